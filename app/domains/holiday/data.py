"""Seed data: Singapore public holidays by year."""

from typing import Dict, List, Tuple

HolidaySeed = Tuple[str, str]

HOLIDAYS_BY_YEAR: Dict[int, List[HolidaySeed]] = {
    2024: [
        ("2024-01-01", "New Year's Day"),
        ("2024-02-10", "Chinese New Year"),
        ("2024-02-11", "Chinese New Year (Day 2)"),
        ("2024-03-29", "Good Friday"),
        ("2024-04-10", "Hari Raya Puasa"),
        ("2024-05-01", "Labour Day"),
        ("2024-05-22", "Vesak Day"),
        ("2024-06-17", "Hari Raya Haji"),
        ("2024-08-09", "National Day"),
        ("2024-10-31", "Deepavali"),
        ("2024-12-25", "Christmas Day"),
    ],
    2025: [
        ("2025-01-01", "New Year's Day"),
        ("2025-01-29", "Chinese New Year"),
        ("2025-01-30", "Chinese New Year (Day 2)"),
        ("2025-03-31", "Hari Raya Puasa"),
        ("2025-04-18", "Good Friday"),
        ("2025-05-01", "Labour Day"),
        ("2025-05-12", "Vesak Day"),
        ("2025-06-06", "Hari Raya Haji"),
        ("2025-08-09", "National Day"),
        ("2025-10-21", "Deepavali"),
        ("2025-12-25", "Christmas Day"),
    ],
    2026: [
        ("2026-01-01", "New Year's Day"),
        ("2026-02-17", "Chinese New Year"),
        ("2026-02-18", "Chinese New Year (Day 2)"),
        ("2026-03-20", "Hari Raya Puasa"),
        ("2026-04-03", "Good Friday"),
        ("2026-05-01", "Labour Day"),
        ("2026-05-31", "Vesak Day"),
        ("2026-06-26", "Hari Raya Haji"),
        ("2026-08-09", "National Day"),
        ("2026-11-09", "Deepavali"),
        ("2026-12-25", "Christmas Day"),
    ],
}


def holiday_seeds_for_year(year: int) -> List[HolidaySeed]:
    return list(HOLIDAYS_BY_YEAR.get(year, []))
