#!/usr/bin/env python3
"""
TaskRelay

Two batch jobs that move task data between Todoist and Google:
1. Report: groups every uncompleted Todoist task by project, lays the groups
   out in a Google Sheet, exports it as a dated PDF into a Drive folder and
   trashes yesterday's PDF
2. Sync: moves open tasks from a Google Tasks list into Todoist, deleting
   each Google task only once Todoist has confirmed the creation
"""

import os
import sys
import yaml
import logging
from pathlib import Path
from typing import Dict, List, Any, Optional, Callable, Mapping
from datetime import date, timedelta
from dataclasses import dataclass, field

INBOX = 'Inbox'
NO_DUE_DATE = 'No due date'
REPORT_PREFIX = 'Todoist Report'
EMAIL_SEPARATOR = '\n\n---\n'
TASK_COLUMN_HEADER = ['Task', 'Due Date']

DEFAULT_TOKEN_FILE = '~/.config/task-relay/token.json'


# ==================== Errors ====================

class RelayError(Exception):
    """Base class for errors that abort a run"""


class ConfigurationMissing(RelayError):
    """A required property is absent or unusable"""


class UpstreamFetchFailure(RelayError):
    """Listing tasks, projects or task lists failed"""


class DestinationWriteFailure(RelayError):
    """The report document could not be produced or exported"""


class LookupMiss(RelayError):
    """The configured Drive folder or Google Tasks list does not exist"""


# ==================== Data Model ====================

@dataclass
class Project:
    """Todoist project"""
    id: str
    name: str

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> 'Project':
        return cls(id=str(raw['id']), name=raw.get('name') or '')


@dataclass
class TodoistTask:
    """Uncompleted Todoist task, as needed by the report"""
    id: str
    content: str
    project_id: Optional[str]
    due: Optional[str]  # human-readable due string; None when there is no due object

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> 'TodoistTask':
        due_info = raw.get('due')
        project_id = raw.get('project_id')
        return cls(
            id=str(raw['id']),
            content=raw.get('content') or '',
            project_id=str(project_id) if project_id is not None else None,
            due=(due_info.get('string') or '') if due_info else None,
        )


@dataclass
class GoogleTask:
    """Open task in a Google Tasks list"""
    id: str
    title: str
    notes: Optional[str] = None
    due: Optional[str] = None  # RFC 3339 timestamp
    links: List[Dict[str, str]] = field(default_factory=list)

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> 'GoogleTask':
        return cls(
            id=raw['id'],
            title=raw.get('title') or '',
            notes=raw.get('notes'),
            due=raw.get('due'),
            links=list(raw.get('links') or []),
        )


@dataclass
class TaskRow:
    """One report line"""
    content: str
    due: str


@dataclass
class TodoistPayload:
    """Body of a Todoist create-task call"""
    content: str
    description: str
    due_date: Optional[str] = None

    def to_dict(self) -> Dict[str, str]:
        body = {'content': self.content, 'description': self.description}
        if self.due_date is not None:
            body['due_date'] = self.due_date
        return body


@dataclass
class ReportDocument:
    """Logical layout of the report: rows plus the indexes of special rows"""
    title: str
    rows: List[List[str]]
    title_row: int = 0
    project_header_rows: List[int] = field(default_factory=list)
    column_header_rows: List[int] = field(default_factory=list)


@dataclass
class SyncReport:
    """Per-task outcome of one sync run"""
    created: List[GoogleTask] = field(default_factory=list)
    skipped: List[GoogleTask] = field(default_factory=list)
    failed: List[GoogleTask] = field(default_factory=list)
    cleanup_failed: List[GoogleTask] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


# ==================== Configuration ====================

# Property name -> location in config.yaml
PROPERTIES = {
    'TODOIST_API_TOKEN': ('todoist', 'api_token'),
    'TODOIST_API_URL': ('todoist', 'api_url'),
    'TODOIST_TIMEOUT': ('todoist', 'timeout'),
    'GOOGLE_TOKEN_FILE': ('google', 'token_file'),
    'GOOGLE_DRIVE_FOLDER_ID': ('report', 'drive_folder_id'),
    'GOOGLE_TASK_LIST_NAME': ('sync', 'task_list_name'),
    'LOG_LEVEL': ('logging', 'level'),
}


class PropertyLookup:
    """
    Key-value view over config.yaml with environment overrides

    Calling the lookup with a property name returns its value as a string,
    or None when it is unset or blank. Environment variables win over the
    file.
    """

    def __init__(self, data: Optional[Dict[str, Any]] = None,
                 environ: Optional[Mapping[str, str]] = None):
        self.data = data or {}
        self.environ = os.environ if environ is None else environ

    @classmethod
    def from_file(cls, config_path: Optional[str] = None,
                  environ: Optional[Mapping[str, str]] = None) -> 'PropertyLookup':
        """
        Load config.yaml

        An explicit path must exist. The default path
        (<project root>/config/config.yaml) is optional so that the jobs can
        run from environment variables alone.
        """
        if config_path is None:
            path = _detect_project_root() / 'config' / 'config.yaml'
            if not path.exists():
                return cls({}, environ)
        else:
            path = Path(config_path).expanduser()
            if not path.exists():
                raise ConfigurationMissing(f"Config file not found: {path}")

        try:
            with open(path, 'r') as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationMissing(f"Config file {path} is not valid YAML: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationMissing(f"Config file {path} must contain a mapping")
        return cls(data, environ)

    def __call__(self, key: str) -> Optional[str]:
        value = self.environ.get(key)
        if value is None and key in PROPERTIES:
            section, name = PROPERTIES[key]
            value = (self.data.get(section) or {}).get(name)
        if value is None:
            return None
        value = str(value).strip()
        return value or None


Lookup = Callable[[str], Optional[str]]


def _require(lookup: Lookup, *keys: str) -> Dict[str, str]:
    values = {key: lookup(key) for key in keys}
    missing = [key for key, value in values.items() if not value]
    if missing:
        raise ConfigurationMissing(
            f"Configuration is incomplete. Please set {' and '.join(missing)} "
            "in config/config.yaml or the environment."
        )
    return values


def _timeout(lookup: Lookup) -> float:
    raw = lookup('TODOIST_TIMEOUT')
    if raw is None:
        return 30.0
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationMissing(f"TODOIST_TIMEOUT must be a number, got {raw!r}") from e


@dataclass
class ReportConfig:
    todoist_api_token: str
    drive_folder_id: str
    google_token_file: str = DEFAULT_TOKEN_FILE
    todoist_api_url: str = 'https://api.todoist.com/rest/v2'
    todoist_timeout: float = 30.0

    @classmethod
    def from_lookup(cls, lookup: Lookup) -> 'ReportConfig':
        values = _require(lookup, 'TODOIST_API_TOKEN', 'GOOGLE_DRIVE_FOLDER_ID')
        return cls(
            todoist_api_token=values['TODOIST_API_TOKEN'],
            drive_folder_id=values['GOOGLE_DRIVE_FOLDER_ID'],
            google_token_file=lookup('GOOGLE_TOKEN_FILE') or DEFAULT_TOKEN_FILE,
            todoist_api_url=lookup('TODOIST_API_URL') or cls.todoist_api_url,
            todoist_timeout=_timeout(lookup),
        )


@dataclass
class SyncConfig:
    todoist_api_token: str
    task_list_name: str
    google_token_file: str = DEFAULT_TOKEN_FILE
    todoist_api_url: str = 'https://api.todoist.com/rest/v2'
    todoist_timeout: float = 30.0

    @classmethod
    def from_lookup(cls, lookup: Lookup) -> 'SyncConfig':
        values = _require(lookup, 'TODOIST_API_TOKEN', 'GOOGLE_TASK_LIST_NAME')
        return cls(
            todoist_api_token=values['TODOIST_API_TOKEN'],
            task_list_name=values['GOOGLE_TASK_LIST_NAME'],
            google_token_file=lookup('GOOGLE_TOKEN_FILE') or DEFAULT_TOKEN_FILE,
            todoist_api_url=lookup('TODOIST_API_URL') or cls.todoist_api_url,
            todoist_timeout=_timeout(lookup),
        )


def _detect_project_root() -> Path:
    """Detect project root directory"""
    current_path = Path(__file__).resolve()

    for parent in current_path.parents:
        if (parent / 'pyproject.toml').exists() or (parent / 'config').is_dir():
            return parent

    return Path.cwd()


# ==================== Grouping / Transformation ====================

def group_tasks_by_project(tasks: List[TodoistTask],
                           projects: List[Project]) -> Dict[str, List[TaskRow]]:
    """
    Group tasks under their project name

    The returned dict iterates projects in the order they are first seen
    among the tasks; the report layout depends on that. Tasks whose project
    is unknown (the Inbox is not always listed) land under "Inbox". Nothing
    is sorted or dropped.
    """
    project_names = {project.id: project.name for project in projects}

    groups: Dict[str, List[TaskRow]] = {}
    for task in tasks:
        project_name = project_names.get(task.project_id) or INBOX
        groups.setdefault(project_name, []).append(TaskRow(
            content=task.content,
            due=task.due if task.due is not None else NO_DUE_DATE,
        ))

    return groups


def build_todoist_payload(task: GoogleTask) -> Optional[TodoistPayload]:
    """
    Convert a Google task into a Todoist create-task payload

    Returns None for untitled tasks. When several links are of type
    "email" only the first is used; that choice is arbitrary. The due date is
    the first ten characters of the Google due timestamp, unvalidated.
    """
    if not task.title:
        return None

    description = task.notes or ''

    email_link = next((link for link in task.links if link.get('type') == 'email'), None)
    if email_link:
        if description:
            description += EMAIL_SEPARATOR
        description += f"Linked Email: {email_link.get('link')}"

    return TodoistPayload(
        content=task.title,
        description=description.strip(),
        due_date=task.due[:10] if task.due else None,
    )


def report_name(day: date) -> str:
    """'Todoist Report - M-D-YYYY', no zero padding"""
    return f"{REPORT_PREFIX} - {day.month}-{day.day}-{day.year}"


def render_report(title: str, groups: Dict[str, List[TaskRow]]) -> ReportDocument:
    """
    Lay out grouped tasks as sheet rows

    Title, spacer, then per project: name, column headers, one row per task
    and a blank separator.
    """
    document = ReportDocument(title=title, rows=[[title], ['']])

    for project_name, rows in groups.items():
        document.project_header_rows.append(len(document.rows))
        document.rows.append([project_name])

        document.column_header_rows.append(len(document.rows))
        document.rows.append(list(TASK_COLUMN_HEADER))

        for row in rows:
            document.rows.append([row.content, row.due])

        document.rows.append([''])

    return document


# ==================== Logging ====================

def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """Setup the TaskRelay logger; integrations log to its children"""
    logger = logging.getLogger("TaskRelay")

    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            '%(asctime)s - TaskRelay - %(levelname)s - %(message)s'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.setLevel(level)
    return logger


def _google_credentials(token_file: str, scopes: List[str]) -> Any:
    from integrations.google_auth import GoogleCredentialsError, load_credentials

    try:
        return load_credentials(token_file, scopes)
    except GoogleCredentialsError as e:
        raise ConfigurationMissing(str(e)) from e


# ==================== Report Pipeline ====================

class ReportPipeline:
    """
    Todoist -> Google Sheet -> PDF in Drive

    Collaborators are built from the config unless passed in.
    """

    def __init__(self, config: ReportConfig, todoist=None, sheets=None, drive=None,
                 today: Callable[[], date] = date.today):
        from integrations import TodoistIntegration, GoogleSheetsIntegration, GoogleDriveIntegration
        from integrations.google_auth import REPORT_SCOPES, build_service

        self.config = config
        self.today = today
        self.logger = logging.getLogger("TaskRelay.Report")

        self._todoist = todoist or TodoistIntegration(
            config.todoist_api_token,
            api_url=config.todoist_api_url,
            timeout=config.todoist_timeout,
        )
        if sheets is None or drive is None:
            credentials = _google_credentials(config.google_token_file, REPORT_SCOPES)
            if sheets is None:
                sheets = GoogleSheetsIntegration(build_service('sheets', 'v4', credentials))
            if drive is None:
                drive = GoogleDriveIntegration(build_service('drive', 'v3', credentials))
        self._sheets = sheets
        self._drive = drive

    def run(self) -> Optional[str]:
        """
        Produce today's report

        Returns:
            Id of the created PDF, or None when there were no tasks
        """
        from integrations import GoogleDriveError, GoogleSheetsError

        today = self.today()
        self.logger.info("Starting Todoist report generation...")

        folder = self._resolve_folder()

        self.delete_yesterdays_report(today)

        groups = self.get_tasks_by_project()
        if not groups:
            self.logger.info("No uncompleted tasks found. Aborting.")
            return None

        name = report_name(today)
        document = render_report(name, groups)

        try:
            sheet = self._sheets.create_spreadsheet(name)
            self._sheets.append_rows(sheet['spreadsheet_id'], document.rows)
        except GoogleSheetsError as e:
            raise DestinationWriteFailure(str(e)) from e

        try:
            self._sheets.apply_report_formatting(
                sheet['spreadsheet_id'],
                sheet['sheet_id'],
                document.title_row,
                document.project_header_rows,
                document.column_header_rows,
            )
        except GoogleSheetsError as e:
            self.logger.warning(f"⚠️  Report will be unformatted: {e}")

        try:
            pdf = self._drive.export_pdf(sheet['spreadsheet_id'], folder['id'], f"{name}.pdf")
        except GoogleDriveError as e:
            self.logger.error(
                f"Export failed; working spreadsheet {sheet['spreadsheet_id']} "
                "was kept for inspection"
            )
            raise DestinationWriteFailure(str(e)) from e

        if not self._drive.trash_file(sheet['spreadsheet_id']):
            self.logger.warning(
                f"⚠️  Could not trash working spreadsheet {sheet['spreadsheet_id']}"
            )

        self.logger.info(
            f"✅ Created {name}.pdf in folder \"{folder.get('name', folder['id'])}\""
        )
        return pdf['id']

    def get_tasks_by_project(self) -> Dict[str, List[TaskRow]]:
        """Fetch projects and uncompleted tasks, grouped by project name"""
        from integrations import TodoistError

        try:
            projects = [Project.from_api(raw) for raw in self._todoist.get_projects()]
            tasks = [TodoistTask.from_api(raw) for raw in self._todoist.get_tasks()]
        except TodoistError as e:
            raise UpstreamFetchFailure(str(e)) from e

        return group_tasks_by_project(tasks, projects)

    def delete_yesterdays_report(self, today: date) -> bool:
        """
        Trash the PDF produced yesterday, if any

        Returns:
            True if a file was trashed. Failures are logged, never raised.
        """
        from integrations import GoogleDriveError

        file_name = f"{report_name(today - timedelta(days=1))}.pdf"

        try:
            files = self._drive.find_files_by_name(self.config.drive_folder_id, file_name)
        except GoogleDriveError as e:
            self.logger.error(f"Could not clean up yesterday's report. Error: {e}")
            return False

        if not files:
            self.logger.info("No report from yesterday to clean up.")
            return False

        if not self._drive.trash_file(files[0]['id']):
            self.logger.error(f"Could not clean up yesterday's report: {file_name}")
            return False

        self.logger.info(f"Cleaned up yesterday's report: {file_name}")
        return True

    def _resolve_folder(self) -> Dict[str, Any]:
        from integrations import GoogleDriveError

        folder_id = self.config.drive_folder_id
        try:
            folder = self._drive.get_folder(folder_id)
        except GoogleDriveError as e:
            raise UpstreamFetchFailure(str(e)) from e

        if folder is None:
            raise LookupMiss(
                f"The Google Drive folder with ID \"{folder_id}\" was not found. "
                "Please check the ID and your permissions."
            )
        return folder


# ==================== Sync Pipeline ====================

class SyncPipeline:
    """
    Google Tasks list -> Todoist

    A Google task is deleted only after Todoist confirms the new task, so a
    failure can at worst duplicate a task on the next run, never lose one.
    """

    def __init__(self, config: SyncConfig, todoist=None, google_tasks=None):
        from integrations import TodoistIntegration, GoogleTasksIntegration
        from integrations.google_auth import SYNC_SCOPES, build_service

        self.config = config
        self.logger = logging.getLogger("TaskRelay.Sync")

        self._todoist = todoist or TodoistIntegration(
            config.todoist_api_token,
            api_url=config.todoist_api_url,
            timeout=config.todoist_timeout,
        )
        if google_tasks is None:
            credentials = _google_credentials(config.google_token_file, SYNC_SCOPES)
            google_tasks = GoogleTasksIntegration(build_service('tasks', 'v1', credentials))
        self._google_tasks = google_tasks

    def run(self) -> SyncReport:
        """Sync every open task of the configured list"""
        report = SyncReport()

        task_list_id = self._find_task_list()
        tasks = self._get_open_tasks(task_list_id)

        if not tasks:
            self.logger.info("No tasks to sync.")
            return report

        self.logger.info(f"Found {len(tasks)} task(s) to sync.")

        for task in tasks:
            self.sync_task(task_list_id, task, report)

        summary = (
            f"{len(report.created)} moved, {len(report.skipped)} skipped, "
            f"{len(report.failed)} failed, {len(report.cleanup_failed)} left in Google Tasks"
        )
        if report.failed or report.cleanup_failed:
            self.logger.warning(f"⚠️  Sync finished with errors: {summary}")
        else:
            self.logger.info(f"✅ Sync finished: {summary}")
        return report

    def sync_task(self, task_list_id: str, task: GoogleTask, report: SyncReport) -> None:
        """Move one task, recording the outcome in report"""
        payload = build_todoist_payload(task)
        if payload is None:
            self.logger.debug(f"Skipping untitled task {task.id}")
            report.skipped.append(task)
            return

        self.logger.info(f"Processing task: \"{task.title}\"")

        created = self._todoist.create_task(payload.to_dict())
        if created is None:
            self.logger.error(
                f"Failed to create task in Todoist: \"{task.title}\". "
                "The task will not be deleted from Google Tasks."
            )
            report.failed.append(task)
            return

        self.logger.info(f"Successfully created task in Todoist: \"{task.title}\"")

        if self._google_tasks.delete_task(task_list_id, task.id):
            self.logger.info(f"Successfully deleted task from Google Tasks: \"{task.title}\"")
            report.created.append(task)
        else:
            self.logger.error(
                f"Failed to delete task from Google Tasks (ID: {task.id}). "
                "Please delete it manually to avoid duplicates."
            )
            report.cleanup_failed.append(task)

    def _find_task_list(self) -> str:
        from integrations import GoogleTasksError

        name = self.config.task_list_name
        try:
            task_list_id = self._google_tasks.find_task_list_id(name)
        except GoogleTasksError as e:
            raise UpstreamFetchFailure(str(e)) from e

        if not task_list_id:
            raise LookupMiss(
                f"Could not find a Google Tasks list named \"{name}\". "
                "Please check the name in your configuration. Aborting sync."
            )
        self.logger.info(f"Found task list \"{name}\" with ID: {task_list_id}")
        return task_list_id

    def _get_open_tasks(self, task_list_id: str) -> List[GoogleTask]:
        from integrations import GoogleTasksError

        try:
            raw_tasks = self._google_tasks.get_open_tasks(task_list_id)
        except GoogleTasksError as e:
            raise UpstreamFetchFailure(str(e)) from e
        return [GoogleTask.from_api(raw) for raw in raw_tasks]


# ==================== CLI Interface ====================

def main(argv: Optional[List[str]] = None, command: Optional[str] = None) -> int:
    """CLI entry point"""
    import argparse

    parser = argparse.ArgumentParser(
        description="TaskRelay: Todoist PDF report and Google Tasks -> Todoist sync"
    )
    if command is None:
        parser.add_argument(
            'command',
            choices=['report', 'sync'],
            help='Job to run'
        )
    parser.add_argument(
        '--config',
        help='Path to config file (default: config/config.yaml)'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Log debug output'
    )

    args = parser.parse_args(argv)
    command = command or args.command

    logger = setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        lookup = PropertyLookup.from_file(args.config)

        level = lookup('LOG_LEVEL')
        if level and not args.verbose:
            try:
                logger.setLevel(level.upper())
            except ValueError as e:
                raise ConfigurationMissing(f"Unknown log level: {level}") from e

        if command == 'report':
            pipeline = ReportPipeline(ReportConfig.from_lookup(lookup))
            pdf_id = pipeline.run()
            if pdf_id:
                logger.info("Successfully created Todoist report PDF. "
                            "Check your specified Google Drive folder.")
            return 0

        pipeline = SyncPipeline(SyncConfig.from_lookup(lookup))
        result = pipeline.run()
        return 0 if result.ok else 1

    except RelayError as e:
        logger.error(f"❌ {e}")
        return 1


def report_main() -> int:
    """Console script: todoist-report"""
    return main(command='report')


def sync_main() -> int:
    """Console script: gtasks-to-todoist"""
    return main(command='sync')


if __name__ == '__main__':
    sys.exit(main())
