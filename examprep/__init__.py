"""Exam preparation platform: timed test attempts and scoring."""
