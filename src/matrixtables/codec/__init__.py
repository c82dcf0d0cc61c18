"""
The CODEC layer turns bytes into tables.
It has NO knowledge of MAT-files; it deals with number tokens, line reading,
layout transposition and the "#1" text table format.
"""
