"""
Vocational assessment domain: phases, scoring, career matching,
response validation and the turn engine.

Usage:
    from src.assessment.engine import AssessmentEngine
"""
