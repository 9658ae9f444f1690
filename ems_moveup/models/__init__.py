from ems_moveup.models.approximators import FunctionApproximator, LinearApproximator, MLPApproximator

__all__ = ["FunctionApproximator", "LinearApproximator", "MLPApproximator"]
