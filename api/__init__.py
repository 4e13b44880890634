"""Exam preparation backend."""
