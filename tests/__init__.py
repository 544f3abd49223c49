"""
Helpdesk core unit tests
"""

import unittest
from .test_api import APITests, AuthorTests, FaultLoggingTests, ListTests
from .test_envelope import EnvelopeTests
from .test_errors import ErrorClassifierTests
from .test_persistence import DatabaseTests
from .test_policies import GateTests
from .test_settings import CLITests, SettingsTests


TEST_CLASSES = [
    APITests,
    AuthorTests,
    CLITests,
    DatabaseTests,
    EnvelopeTests,
    ErrorClassifierTests,
    FaultLoggingTests,
    GateTests,
    ListTests,
    SettingsTests,
]


def get_suite() -> unittest.TestSuite:
    suite = unittest.TestSuite()
    for cls in TEST_CLASSES:
        for fixture in filter(lambda f: f.startswith("test_"), dir(cls)):
            suite.addTest(cls(fixture))
    return suite
