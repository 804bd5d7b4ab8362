"""
Core allowance arithmetic.

``dates`` holds the calendar helpers and ``distribution`` the bucket
split. Both are pure: no clock reads, no state.
"""
