"""
Exam engine and its storage collaborators
"""
