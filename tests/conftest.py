"""Shared fixtures"""

import pytest
from datetime import date

from task_relay import ReportConfig, SyncConfig


class FakeTodoist:
    """Stands in for TodoistIntegration"""

    def __init__(self, projects=None, tasks=None, reject=()):
        self.projects = projects or []
        self.tasks = tasks or []
        self.reject = set(reject)
        self.created = []

    def get_projects(self):
        return self.projects

    def get_tasks(self):
        return self.tasks

    def create_task(self, payload):
        if payload['content'] in self.reject:
            return None
        self.created.append(payload)
        return dict(payload, id=str(len(self.created)))


class FakeGoogleTasks:
    """Stands in for GoogleTasksIntegration, with a mutable task list"""

    def __init__(self, lists=None, tasks=None, undeletable=()):
        self.lists = lists if lists is not None else {'My Tasks': 'list-1'}
        self.tasks = list(tasks or [])
        self.undeletable = set(undeletable)
        self.deleted = []

    def find_task_list_id(self, name):
        return self.lists.get(name)

    def get_open_tasks(self, task_list_id):
        return list(self.tasks)

    def delete_task(self, task_list_id, task_id):
        if task_id in self.undeletable:
            return False
        self.deleted.append(task_id)
        self.tasks = [t for t in self.tasks if t['id'] != task_id]
        return True


@pytest.fixture
def fake_todoist():
    return FakeTodoist


@pytest.fixture
def fake_google_tasks():
    return FakeGoogleTasks


@pytest.fixture
def report_config():
    return ReportConfig(todoist_api_token='token', drive_folder_id='folder-1')


@pytest.fixture
def sync_config():
    return SyncConfig(todoist_api_token='token', task_list_name='My Tasks')


@pytest.fixture
def fixed_today():
    return lambda: date(2026, 3, 7)
