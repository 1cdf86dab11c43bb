"""Mapping helpers for rationals stored as numerator/denominator columns."""

from ledger_kernel.domain.rational import RationalValue


def rational_property(numerator_attr: str, denominator_attr: str, doc: str | None = None) -> property:
    """
    Expose two integer columns as one RationalValue attribute.

    Values are stored unreduced with the sign carried by the numerator, so
    SQL comparisons can cross-multiply without flipping inequalities.
    A column pair holding NULLs reads back as None.
    """

    def getter(self) -> RationalValue | None:
        numerator = getattr(self, numerator_attr)
        denominator = getattr(self, denominator_attr)
        if numerator is None or denominator is None:
            return None
        return RationalValue(numerator, denominator)

    def setter(self, value: RationalValue | None) -> None:
        if value is None:
            setattr(self, numerator_attr, None)
            setattr(self, denominator_attr, None)
            return
        numerator, denominator = value.numerator, value.denominator
        if denominator < 0:
            numerator, denominator = -numerator, -denominator
        setattr(self, numerator_attr, numerator)
        setattr(self, denominator_attr, denominator)

    return property(getter, setter, doc=doc)
