# FILE: cbt_engine/models/__init__.py
"""
Pydantic models for request/response validation
"""
from cbt_engine.models.exams import *
from cbt_engine.models.attempts import *
from cbt_engine.models.results import *
