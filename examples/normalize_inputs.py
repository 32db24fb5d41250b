"""Input normalization with guards.

Demonstrates:
- .before() to patch arguments without touching the function body
- .map() and .filter() to clean up variadic input
- .abort() to short-circuit on bad input
- .after() to post-process the result
"""

from flap import guard

# --- Plain functions, written for clean input only ---


def add3(a, b, c):
    return a + b + c


def total(*amounts):
    return sum(amounts)


# --- Guarded versions ---

# Negative first argument is clamped to 1
clamped_add3 = guard(add3).before(lambda a, b, c: [1 if a < 0 else a, b, c])

# Strings come in from a form; blanks are dropped, the rest parsed as cents.
# The outermost transformation runs first, so filter sees raw strings.
form_total = (
    guard(total)
    .after(lambda cents: cents / 100)
    .map(int)
    .filter(lambda raw: raw.strip() != "")
    .abort(lambda *raw: not raw)
)


# --- Demo ---

if __name__ == "__main__":
    print("=" * 50)
    print("Patching arguments")
    print("=" * 50)
    print(f"  add3(-1, 1, 1)         -> {add3(-1, 1, 1)}")
    print(f"  clamped_add3(-1, 1, 1) -> {clamped_add3(-1, 1, 1)}")

    print("\n" + "=" * 50)
    print("Cleaning form input")
    print("=" * 50)
    print(f"  form_total('150', ' ', '250') -> {form_total('150', ' ', '250')}")
    print(f"  form_total()                  -> {form_total()}")
