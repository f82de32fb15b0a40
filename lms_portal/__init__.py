"""School LMS portal: role dashboards, classes, subjects, content and quizzes."""

__version__ = "0.1.0"
