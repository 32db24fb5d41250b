"""Routing JSON events by shape.

Demonstrates:
- Structural patterns (JSONPath by default) as guard conditions
- Consequences receiving only the matching documents
- Choosing another matcher with Config or pattern(matcher=...)
- Capturing dispatch logs to see which clause fired
"""

from flap import Config, capture_dispatch_logs, guard, pattern

# --- Handlers ---


def ignore(*events):
    return f"ignored {len(events)} event(s)"


def on_payment(*events):
    return f"payments: {[e['payment']['amount'] for e in events]}"


def on_refund(*events):
    return f"refunds: {len(events)}"


def on_admin(*events):
    return "admin action"


# --- Router ---

# Most recently attached clause is tried first: refunds win over payments
route = (
    guard(ignore, name="route")
    .when("$.payment.amount", on_payment)
    .when("$..refund", on_refund)
    .when(pattern("/actor/admin_token", matcher="pointer"), on_admin)
)

# Same router shape, strings compiled as JMESPath
with Config({"matcher": "jmespath"}):
    large_orders = guard(ignore).when("items[?qty > `10`]", lambda *orders: "bulk order")


# --- Demo ---

if __name__ == "__main__":
    events = [
        ({"payment": {"amount": 12}}, {"noise": True}, {"payment": {"amount": 30}}),
        ({"payment": {"amount": 5, "refund": {"reason": "damaged"}}},),
        ({"actor": {"admin_token": "t-123"}},),
        ({"hello": "world"},),
    ]

    print("=" * 50)
    print("Routing events")
    print("=" * 50)
    for batch in events:
        with capture_dispatch_logs() as captured:
            result = route(*batch)
        log = captured.log
        print(f"  {result:<30} via {log.outcome}:{log.consequence}")

    print("\n" + "=" * 50)
    print("JMESPath patterns")
    print("=" * 50)
    print(f"  {large_orders({'items': [{'qty': 50}]})}")
    print(f"  {large_orders({'items': [{'qty': 1}]})}")
