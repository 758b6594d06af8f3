"""
Power Flow Options Module
=========================

Configuration record for a power flow run.

``PFOptions`` is an immutable dataclass validated on construction.  Plain
strings and integer codes are accepted for the enum-valued fields and
coerced on construction, so an unsupported algorithm is rejected before any
solve is attempted.

Classic option dictionaries (``PF_ALG``, ``PF_TOL`` ...) can be converted
with ``PFOptions.from_mapping``.

Date: 2026-10-19
"""

import numbers
from dataclasses import dataclass, replace as dc_replace
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from core.exceptions import ConfigurationError, UnsupportedAlgorithmError


class PFAlgorithm(Enum):
    """AC power flow solution algorithm."""
    NEWTON = "NR"
    FDPF_XB = "FDXB"
    FDPF_BX = "FDBX"
    GAUSS_SEIDEL = "GS"

    @classmethod
    def coerce(cls, value: Any) -> "PFAlgorithm":
        """
        Convert an enum member, its value or name, or a numeric code.

        Numeric codes follow the classic option convention:
        1 = Newton, 2 = fast-decoupled XB, 3 = fast-decoupled BX,
        4 = Gauss-Seidel.

        Raises
        ------
        UnsupportedAlgorithmError
            If ``value`` does not name a supported algorithm.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, numbers.Real) and not isinstance(value, bool):
            if float(value).is_integer() and int(value) in _ALG_CODES:
                return _ALG_CODES[int(value)]
        elif isinstance(value, str):
            key = value.strip().upper()
            for member in cls:
                if key in (member.value, member.name):
                    return member
        raise UnsupportedAlgorithmError(
            f"Unsupported power flow algorithm {value!r}. Only Newton's method, "
            "fast-decoupled (XB, BX) and Gauss-Seidel are implemented."
        )

    @property
    def is_fast_decoupled(self) -> bool:
        return self in (PFAlgorithm.FDPF_XB, PFAlgorithm.FDPF_BX)


_ALG_CODES = {
    1: PFAlgorithm.NEWTON,
    2: PFAlgorithm.FDPF_XB,
    3: PFAlgorithm.FDPF_BX,
    4: PFAlgorithm.GAUSS_SEIDEL,
}

# Default iteration limits per algorithm
_DEFAULT_MAX_IT = {
    PFAlgorithm.NEWTON: 10,
    PFAlgorithm.FDPF_XB: 30,
    PFAlgorithm.FDPF_BX: 30,
    PFAlgorithm.GAUSS_SEIDEL: 1000,
}


class QLimitMode(Enum):
    """Generator reactive power limit enforcement policy."""
    OFF = 0
    ALL_AT_ONCE = 1
    ONE_AT_A_TIME = 2

    @classmethod
    def coerce(cls, value: Any) -> "QLimitMode":
        """Convert an enum member, bool, integer code or member name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            return cls.ALL_AT_ONCE if value else cls.OFF
        if isinstance(value, numbers.Real) and float(value).is_integer():
            try:
                return cls(int(value))
            except ValueError:
                pass
        elif isinstance(value, str):
            key = value.strip().upper().replace("-", "_")
            if key in cls.__members__:
                return cls[key]
        raise ConfigurationError(f"Invalid reactive limit enforcement mode {value!r}.")


@dataclass(frozen=True)
class PFOptions:
    """
    Options controlling a power flow run.

    Attributes
    ----------
    algorithm : PFAlgorithm
        AC solution algorithm.  Ignored when ``dc`` is True.
    tolerance : float
        Termination tolerance on the infinity norm of the power mismatch
        (p.u.).  Must be positive.
    max_iterations : int or None
        Iteration limit.  ``None`` selects the default of the algorithm
        (10 Newton, 30 fast-decoupled, 1000 Gauss-Seidel).
    enforce_q_limits : QLimitMode
        Generator reactive limit enforcement policy (AC only).
    dc : bool
        Solve the DC approximation instead of the AC power flow.
    verbose : int
        Diagnostic output level: 0 silent, 1 summary, 2 iteration table.
    """
    algorithm: PFAlgorithm = PFAlgorithm.NEWTON
    tolerance: float = 1e-8
    max_iterations: Optional[int] = None
    enforce_q_limits: QLimitMode = QLimitMode.OFF
    dc: bool = False
    verbose: int = 0

    def __post_init__(self) -> None:
        """Coerce enum fields and validate parameters."""
        object.__setattr__(self, "algorithm", PFAlgorithm.coerce(self.algorithm))
        object.__setattr__(self, "enforce_q_limits", QLimitMode.coerce(self.enforce_q_limits))
        if not self.tolerance > 0:
            raise ConfigurationError(f"tolerance must be positive, got {self.tolerance}")
        if self.max_iterations is not None:
            if int(self.max_iterations) != self.max_iterations or self.max_iterations < 1:
                raise ConfigurationError(
                    f"max_iterations must be a positive integer, got {self.max_iterations}"
                )
            object.__setattr__(self, "max_iterations", int(self.max_iterations))
        if self.verbose < 0:
            raise ConfigurationError(f"verbose must be non-negative, got {self.verbose}")
        object.__setattr__(self, "tolerance", float(self.tolerance))
        object.__setattr__(self, "dc", bool(self.dc))
        object.__setattr__(self, "verbose", int(self.verbose))

    @property
    def max_it(self) -> int:
        """Effective iteration limit for the selected algorithm."""
        if self.max_iterations is not None:
            return self.max_iterations
        return _DEFAULT_MAX_IT[self.algorithm]

    def replace(self, **changes: Any) -> "PFOptions":
        """Return a copy with the given fields replaced (validated again)."""
        return dc_replace(self, **changes)

    @classmethod
    def from_mapping(cls, opts: Mapping[str, Any]) -> "PFOptions":
        """
        Build options from a classic option dictionary.

        Recognised keys: ``PF_ALG``, ``PF_TOL``, ``PF_MAX_IT``,
        ``ENFORCE_Q_LIMS``, ``PF_DC``, ``VERBOSE`` (case-insensitive), as
        well as the dataclass field names.

        Raises
        ------
        ConfigurationError
            For an unknown key or an invalid value.
        """
        kwargs: Dict[str, Any] = {}
        for key, value in opts.items():
            field_name = _MAPPING_KEYS.get(str(key).upper(), None)
            if field_name is None and key in _FIELD_NAMES:
                field_name = key
            if field_name is None:
                raise ConfigurationError(f"Unknown power flow option '{key}'.")
            kwargs[field_name] = value
        return cls(**kwargs)


_MAPPING_KEYS = {
    "PF_ALG": "algorithm",
    "PF_TOL": "tolerance",
    "PF_MAX_IT": "max_iterations",
    "ENFORCE_Q_LIMS": "enforce_q_limits",
    "PF_DC": "dc",
    "VERBOSE": "verbose",
}

_FIELD_NAMES = ("algorithm", "tolerance", "max_iterations", "enforce_q_limits", "dc", "verbose")
