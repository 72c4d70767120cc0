# ApplyTrack - Job Application Tracker
"""
ApplyTrack - job application tracking API.

Track jobs through the hiring pipeline, build and export resumes and cover
letters, schedule interviews, manage mentors and teams, and research salaries.
"""

__version__ = "0.1.0"
__author__ = "ApplyTrack"
__description__ = "Job application tracking API"
