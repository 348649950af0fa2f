"""
Page tools organized by domain.

- base: structured tool errors
- extraction: versioned in-page DOM extraction contract
- accessibility: overview / query / section / element rotor
- actions: single interactions
- assertions: page state conditions
- screenshot: capture and persist PNGs
"""

from .accessibility import get_elements, get_overview, get_section, query_elements
from .actions import ACTION_TYPES, ActionParams, perform_action
from .assertions import AssertionResult, check_assertion, describe_condition
from .base import SmartToolError
from .extraction import EXTRACT_SCRIPT_VERSION, run_extraction
from .screenshot import capture, image_dimensions, persist_screenshot

__all__ = [
    "ACTION_TYPES",
    "ActionParams",
    "AssertionResult",
    "EXTRACT_SCRIPT_VERSION",
    "SmartToolError",
    "capture",
    "check_assertion",
    "describe_condition",
    "get_elements",
    "get_overview",
    "get_section",
    "image_dimensions",
    "perform_action",
    "persist_screenshot",
    "query_elements",
    "run_extraction",
]
