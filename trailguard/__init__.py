# TrailGuard — wildlife-aware routing and live navigation core
#
# Lazy imports — keep ``import trailguard`` cheap for the API process and
# for tests that only need the geometry helpers.

__all__ = ["plan_safe_route", "predict_hazards", "NavigationSession"]


def __getattr__(name: str):
    if name == "plan_safe_route":
        from trailguard.arbiter import plan_safe_route
        return plan_safe_route
    if name == "predict_hazards":
        from trailguard.predictor import predict_hazards
        return predict_hazards
    if name == "NavigationSession":
        from trailguard.navigation import NavigationSession
        return NavigationSession
    raise AttributeError(f"module 'trailguard' has no attribute {name!r}")
