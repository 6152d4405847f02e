"""Spending profiles: how real spending changes as retirement goes on."""

from __future__ import annotations

from bisect import bisect_left
from typing import Dict, Iterable, Mapping, Sequence, Tuple, Union

from .errors import ConfigurationError


class SpendingProfile:
    """Maps ``(age, retirement_age)`` to a multiplier on base spending."""

    kind = "base"

    def multiplier(self, age: int, retirement_age: int) -> float:
        raise NotImplementedError

    def calculate_year_spending(
        self,
        initial_spending: float,
        age: int,
        retirement_age: int,
        inflation_rate: float,
        year_index: int,
    ) -> float:
        inflated = initial_spending * (1.0 + inflation_rate) ** year_index
        return inflated * self.multiplier(age, retirement_age)

    def multipliers_for_range(self, start_age: int, end_age: int, retirement_age: int) -> Dict[int, float]:
        return {age: self.multiplier(age, retirement_age) for age in range(start_age, end_age + 1)}

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class FlatProfile(SpendingProfile):
    kind = "flat"

    def multiplier(self, age: int, retirement_age: int) -> float:
        return 1.0


class SmileProfile(SpendingProfile):
    """Years-since-retirement step curve.

    Full spending for the first 5 years, then a 1%/yr decline to 95% at
    year 10 and 85% at year 20, a 0.5%/yr decline to 80% at year 30, and
    flat at 80% afterwards.
    """

    kind = "smile"

    def multiplier(self, age: int, retirement_age: int) -> float:
        years = age - retirement_age
        if years <= 5:
            return 1.0
        if years <= 10:
            return 1.0 - (years - 5) * 0.01
        if years <= 20:
            return 0.95 - (years - 10) * 0.01
        if years <= 30:
            return 0.85 - (years - 20) * 0.005
        return 0.80


class CustomProfile(SpendingProfile):
    """Piecewise-linear curve through user supplied ``age -> multiplier`` points.

    Ages before the first point or after the last take that endpoint's value.
    """

    kind = "custom"

    def __init__(self, points: Union[Mapping, Iterable[Tuple[int, float]]]):
        items = points.items() if isinstance(points, Mapping) else points
        table = {}
        for age, mult in items:
            table[int(age)] = float(mult)
        if not table:
            raise ConfigurationError("custom spending profile needs at least one (age, multiplier) point")
        if any(m < 0 for m in table.values()):
            raise ConfigurationError("spending multipliers cannot be negative")
        self.ages: Sequence[int] = sorted(table)
        self.values: Sequence[float] = [table[a] for a in self.ages]

    def multiplier(self, age: int, retirement_age: int) -> float:
        ages, values = self.ages, self.values
        if age <= ages[0]:
            return values[0]
        if age >= ages[-1]:
            return values[-1]
        i = bisect_left(ages, age)
        if ages[i] == age:
            return values[i]
        a0, a1 = ages[i - 1], ages[i]
        v0, v1 = values[i - 1], values[i]
        return v0 + (v1 - v0) * (age - a0) / (a1 - a0)

    def __repr__(self) -> str:
        return f"CustomProfile({dict(zip(self.ages, self.values))!r})"


def make_spending_profile(kind: str = "smile", points=None) -> SpendingProfile:
    """Build the profile named ``kind``.

    ``custom`` without any points falls back to the flat curve.
    """
    if kind == "flat":
        return FlatProfile()
    if kind == "smile":
        return SmileProfile()
    if kind == "custom":
        if not points:
            return FlatProfile()
        return CustomProfile(points)
    raise ConfigurationError(f"Unknown spending profile: {kind!r}")


__all__ = ["SpendingProfile", "FlatProfile", "SmileProfile", "CustomProfile", "make_spending_profile"]
