"""Health record engine for livestock medical history.

This package contains the record lifecycle, scheduling, scoring and alerting
rules, isolated from storage and messaging so they can be tested in memory.
"""
