"""
Demo data seeding script for GradeVault.

Generates deterministic pseudo-random scores for a handful of students,
encrypts them through the configured oracle and appends them to the ledger.
"""

from __future__ import annotations

import asyncio
import random
import sys
import time
from typing import List, Tuple

import typer

from gradevault.config import get_settings
from gradevault.session import build_session
from gradevault.utils.logging import configure_logging

app = typer.Typer(help="Seed the ledger with encrypted demo grades.")

SUBJECTS = [
    "Mathematics",
    "Physics",
    "Chemistry",
    "Biology",
    "History",
    "Literature",
    "Computer Science",
    "Economics",
]


def _generate_grades(students: List[str], per_student: int, seed: int) -> List[Tuple[str, str, int]]:
    """Return (owner, subject, score) triples; the same seed yields the same list."""
    rng = random.Random(seed)
    grades: List[Tuple[str, str, int]] = []
    for owner in students:
        for subject in rng.sample(SUBJECTS, k=min(per_student, len(SUBJECTS))):
            grades.append((owner, subject, rng.randint(40, 100)))
    return grades


def _student_addresses(count: int, seed: int) -> List[str]:
    rng = random.Random(seed)
    return [f"0x{rng.getrandbits(160):040x}" for _ in range(count)]


async def _seed(grades: List[Tuple[str, str, int]]) -> int:
    settings = get_settings()
    submitted = 0
    for owner in sorted({owner for owner, _, _ in grades}):
        async with build_session(settings, owner=owner) as session:
            for grade_owner, subject, score in grades:
                if grade_owner != owner:
                    continue
                await session.submit_record(subject, score)
                submitted += 1
    return submitted


@app.command()
def main(
    students: int = typer.Option(3, "--students", "-n", help="Number of student addresses."),
    per_student: int = typer.Option(4, "--per-student", "-p", help="Grades per student."),
    seed: int = typer.Option(42, "--seed", help="Deterministic RNG seed."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Only print the generated grades."),
) -> None:
    """
    Generate demo grades and submit them to the configured ledger.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)

    grades = _generate_grades(_student_addresses(students, seed), per_student, seed)
    typer.echo(f"Generated {len(grades)} grades for {students} students (seed={seed}).")
    if dry_run:
        for owner, subject, score in grades:
            typer.echo(f"{owner} {subject}: {score}")
        return

    start = time.perf_counter()
    submitted = asyncio.run(_seed(grades))
    typer.echo(f"Submitted {submitted} encrypted grades in {time.perf_counter() - start:.2f}s.")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
