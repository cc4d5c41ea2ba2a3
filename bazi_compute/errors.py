"""
Failure types for chart computation.

Every failure is fatal for the request that raised it: nothing is retried
and no partial chart is returned. Callers that need a wire-friendly shape
use `BaziError.to_dict()`.
"""


class BaziError(ValueError):
    """Base class for all chart computation failures."""

    kind = "bazi_error"

    def to_dict(self) -> dict:
        return {
            "success": False,
            "kind": self.kind,
            "message": str(self),
        }


class MissingCalendarDataError(BaziError):
    """Calendar conversion failed or returned incomplete ganzhi fields."""

    kind = "missing_calendar_data"


class UnrecognizedStemError(BaziError):
    """A stem character is not one of the ten Heavenly Stems."""

    kind = "unrecognized_stem"


class InvalidSexagenaryPositionError(BaziError):
    """A stem/branch pair is not one of the sixty Jia Zi combinations."""

    kind = "invalid_sexagenary_position"


class EphemerisUnavailableError(BaziError):
    """No usable Jie solar terms were found around the birth instant."""

    kind = "ephemeris_unavailable"


class InvalidBirthDataError(BaziError):
    """Malformed birth date, time, gender, timezone or rounding policy."""

    kind = "invalid_birth_data"
