"""
Syllabus Sync core package.

This package currently focuses on the import subsystem: turning a syllabus PDF
into calendar events. It exposes dataclasses for events and import state, a
pluggable extractor and parser interface, an event repository, and an import
pipeline that drives preparation, extraction, pre-analysis, remote parsing and
merge stages behind a simulated progress bar.
"""
