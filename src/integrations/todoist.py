"""
Todoist Integration

Talks to the Todoist REST API (v2) with a bearer token.

Used by both jobs:
- Report: list projects and uncompleted tasks
- Sync: create tasks moved over from Google Tasks
"""

import logging
from typing import List, Dict, Any, Optional

import requests

DEFAULT_API_URL = "https://api.todoist.com/rest/v2"
DEFAULT_TIMEOUT = 30


class TodoistError(Exception):
    """Raised when a Todoist listing call fails"""


class TodoistIntegration:
    """Integration with Todoist via its REST API"""

    def __init__(
        self,
        api_token: str,
        api_url: str = DEFAULT_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize Todoist integration

        Args:
            api_token: Personal API token from Todoist settings
            api_url: Base URL of the REST API
            timeout: Seconds to wait for each HTTP call
            session: Optional pre-built session (tests inject a mock)
        """
        self.logger = logging.getLogger("TaskRelay.Todoist")
        self.api_url = api_url.rstrip('/')
        self.timeout = timeout

        self.session = session or requests.Session()
        self.session.headers.update({'Authorization': f'Bearer {api_token}'})

    def get_projects(self) -> List[Dict[str, Any]]:
        """
        Get all projects

        Returns:
            Raw project dicts (id, name, ...)

        Raises:
            TodoistError: if the request fails or returns a non-2xx status
        """
        self.logger.info("Fetching projects from Todoist...")
        projects = self._get('projects')
        self.logger.info(f"Found {len(projects)} projects")
        return projects

    def get_tasks(self) -> List[Dict[str, Any]]:
        """
        Get all active (uncompleted) tasks

        Returns:
            Raw task dicts (id, content, project_id, due, ...)

        Raises:
            TodoistError: if the request fails or returns a non-2xx status
        """
        self.logger.info("Fetching uncompleted tasks from Todoist...")
        tasks = self._get('tasks')
        self.logger.info(f"Found {len(tasks)} uncompleted tasks")
        return tasks

    def create_task(self, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Create a task

        Only an HTTP 200 counts as success. Anything else, including a
        transport error, is logged and reported as None so the caller can
        keep the source task.

        Args:
            payload: JSON body (content, description, optional due_date)

        Returns:
            The created task dict on success, None otherwise
        """
        try:
            response = self.session.post(
                self._url('tasks'),
                json=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            self.logger.error(f"Failed to call Todoist API: {e}")
            return None

        if response.status_code != 200:
            self.logger.error(
                f"Todoist API returned an error. Status: {response.status_code}. "
                f"Response: {response.text}"
            )
            return None

        try:
            return response.json()
        except ValueError:
            # Created, but the body is not JSON; still a confirmed creation
            return {'content': payload.get('content')}

    def _get(self, path: str) -> List[Dict[str, Any]]:
        try:
            response = self.session.get(self._url(path), timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            raise TodoistError(f"GET /{path} failed: {e}") from e
        except ValueError as e:
            raise TodoistError(f"GET /{path} returned invalid JSON: {e}") from e

    def _url(self, path: str) -> str:
        return f"{self.api_url}/{path}"
