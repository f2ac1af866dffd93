"""Sketch Studio: LLM-driven SketchLang generation."""
