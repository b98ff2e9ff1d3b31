"""
Integration modules for external task and document services
"""

from .todoist import TodoistIntegration, TodoistError
from .google_tasks import GoogleTasksIntegration, GoogleTasksError
from .google_sheets import GoogleSheetsIntegration, GoogleSheetsError
from .google_drive import GoogleDriveIntegration, GoogleDriveError

__all__ = [
    'TodoistIntegration', 'TodoistError',
    'GoogleTasksIntegration', 'GoogleTasksError',
    'GoogleSheetsIntegration', 'GoogleSheetsError',
    'GoogleDriveIntegration', 'GoogleDriveError',
]
