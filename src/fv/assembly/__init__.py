"""Operator assembly, closures and momentum right-hand side."""

from .operators import Operators, BoundaryVectors, assemble_operators
from .closures import (
    ViscosityModel,
    LaminarModel,
    MixingLengthModel,
    SmagorinskyModel,
    QRModel,
    KEpsilonModel,
    viscosity_model_from_name,
)
from .convection_models import (
    ConvectionModel,
    NoRegConvection,
    LerayConvection,
    C2Convection,
    C4Convection,
    convection_model_from_name,
)
from .momentum import MomentumAssembly

__all__ = [
    "Operators",
    "BoundaryVectors",
    "assemble_operators",
    "ViscosityModel",
    "LaminarModel",
    "MixingLengthModel",
    "SmagorinskyModel",
    "QRModel",
    "KEpsilonModel",
    "viscosity_model_from_name",
    "ConvectionModel",
    "NoRegConvection",
    "LerayConvection",
    "C2Convection",
    "C4Convection",
    "convection_model_from_name",
    "MomentumAssembly",
]
