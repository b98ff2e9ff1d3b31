"""
Google Tasks Integration

Reads open tasks from a Google Tasks list and deletes them once moved.
"""

import logging
from typing import List, Dict, Any, Optional

from .google_auth import GOOGLE_API_ERRORS


class GoogleTasksError(Exception):
    """Raised when a Google Tasks listing call fails"""


class GoogleTasksIntegration:
    """Integration with Google Tasks API v1"""

    PAGE_SIZE = 100

    def __init__(self, service: Any):
        """
        Initialize Google Tasks integration

        Args:
            service: Discovery client from build('tasks', 'v1', ...)
        """
        self.service = service
        self.logger = logging.getLogger("TaskRelay.GoogleTasks")

    def find_task_list_id(self, name: str) -> Optional[str]:
        """
        Find the id of the first task list whose title equals name

        Returns:
            List id, or None if no list has that title

        Raises:
            GoogleTasksError: if listing task lists fails
        """
        for task_list in self._paginate(self.service.tasklists().list):
            if task_list.get('title') == name:
                return task_list['id']
        return None

    def get_open_tasks(self, task_list_id: str) -> List[Dict[str, Any]]:
        """
        Get uncompleted, non-hidden tasks in list order

        Raises:
            GoogleTasksError: if listing tasks fails
        """
        return list(self._paginate(
            self.service.tasks().list,
            tasklist=task_list_id,
            showCompleted=False,
            showHidden=False,
        ))

    def delete_task(self, task_list_id: str, task_id: str) -> bool:
        """
        Delete a task

        Returns:
            True if deleted, False on any API error (already logged)
        """
        try:
            self.service.tasks().delete(tasklist=task_list_id, task=task_id).execute()
            return True
        except GOOGLE_API_ERRORS as e:
            self.logger.error(f"Failed to delete Google task {task_id}: {e}")
            return False

    def _paginate(self, method, **params):
        page_token = None
        while True:
            try:
                response = method(
                    maxResults=self.PAGE_SIZE, pageToken=page_token, **params
                ).execute()
            except GOOGLE_API_ERRORS as e:
                raise GoogleTasksError(f"Google Tasks request failed: {e}") from e

            for item in response.get('items', []):
                yield item

            page_token = response.get('nextPageToken')
            if not page_token:
                break
