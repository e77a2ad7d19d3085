"""
Earth Engine lessons, in teaching order.

Each lesson module exposes TITLE, SUMMARY and run(ctx) -> dict.
"""

import logging
from collections import OrderedDict
from typing import Dict, Iterable, Optional

from gee_primer.lessons import (
    lesson_01_collections,
    lesson_02_band_math,
    lesson_03_indices,
    lesson_04_map_reduce,
    lesson_05_visualization,
    lesson_06_export,
)
from gee_primer.lessons.context import LessonContext

logger = logging.getLogger(__name__)

LESSONS = OrderedDict([
    ('collections', lesson_01_collections),
    ('band_math', lesson_02_band_math),
    ('indices', lesson_03_indices),
    ('map_reduce', lesson_04_map_reduce),
    ('visualization', lesson_05_visualization),
    ('export', lesson_06_export),
])


def get_lesson(key: str):
    """
    Find a lesson by slug ('indices') or number ('3', '03').
    """
    text = str(key).strip().lower().replace('-', '_')
    if text in LESSONS:
        return LESSONS[text]
    if text.isdigit():
        number = int(text)
        if 1 <= number <= len(LESSONS):
            return list(LESSONS.values())[number - 1]
    raise ValueError(f"Unknown lesson '{key}'. Available: {', '.join(LESSONS)} (or 1-{len(LESSONS)})")


def lesson_slug(module) -> str:
    for slug, candidate in LESSONS.items():
        if candidate is module:
            return slug
    raise ValueError(f"{module!r} is not a registered lesson")


def run_lessons(keys: Optional[Iterable[str]], ctx: LessonContext) -> Dict[str, dict]:
    """
    Run lessons in the given order (all lessons when keys is empty).

    Returns
    -------
    dict
        Lesson slug -> result dict returned by the lesson
    """
    modules = [get_lesson(k) for k in keys] if keys else list(LESSONS.values())
    results = {}
    for module in modules:
        slug = lesson_slug(module)
        logger.info("Running lesson %s: %s", slug, module.TITLE)
        results[slug] = module.run(ctx)
    return results


__all__ = ['LESSONS', 'LessonContext', 'get_lesson', 'run_lessons']
