"""
Tests for the Todoist and Google API clients

Google discovery clients and the requests session are replaced with mocks.
"""

from unittest.mock import MagicMock

import httplib2
import pytest
import requests
from googleapiclient.errors import HttpError

from integrations import (
    GoogleDriveError,
    GoogleDriveIntegration,
    GoogleSheetsError,
    GoogleSheetsIntegration,
    GoogleTasksError,
    GoogleTasksIntegration,
    TodoistError,
    TodoistIntegration,
)


def http_error(status):
    return HttpError(httplib2.Response({'status': status}), b'error')


def response(status_code=200, body=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = 'body'
    resp.json.return_value = body
    if status_code >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f'{status_code} Error')
    return resp


class TestTodoistIntegration:
    """Todoist REST client"""

    def make(self):
        session = MagicMock()
        session.headers = {}
        return TodoistIntegration('secret', session=session, timeout=5), session

    def test_bearer_token(self):
        _, session = self.make()
        assert session.headers['Authorization'] == 'Bearer secret'

    def test_get_projects(self):
        todoist, session = self.make()
        session.get.return_value = response(body=[{'id': '1', 'name': 'Work'}])

        assert todoist.get_projects() == [{'id': '1', 'name': 'Work'}]
        session.get.assert_called_once_with('https://api.todoist.com/rest/v2/projects', timeout=5)

    def test_get_tasks_failure_raises(self):
        todoist, session = self.make()
        session.get.return_value = response(status_code=500)

        with pytest.raises(TodoistError):
            todoist.get_tasks()

    def test_get_tasks_connection_error_raises(self):
        todoist, session = self.make()
        session.get.side_effect = requests.ConnectionError('down')

        with pytest.raises(TodoistError):
            todoist.get_tasks()

    def test_create_task_success(self):
        todoist, session = self.make()
        session.post.return_value = response(body={'id': '99', 'content': 'x'})

        assert todoist.create_task({'content': 'x'}) == {'id': '99', 'content': 'x'}
        session.post.assert_called_once_with(
            'https://api.todoist.com/rest/v2/tasks', json={'content': 'x'}, timeout=5)

    @pytest.mark.parametrize('status', [204, 400, 403, 500])
    def test_create_task_requires_200(self, status):
        todoist, session = self.make()
        session.post.return_value = response(status_code=status)

        assert todoist.create_task({'content': 'x'}) is None

    def test_create_task_transport_error(self):
        todoist, session = self.make()
        session.post.side_effect = requests.Timeout('slow')

        assert todoist.create_task({'content': 'x'}) is None

    def test_create_task_non_json_body_counts_as_created(self):
        todoist, session = self.make()
        resp = response(status_code=200)
        resp.json.side_effect = ValueError('Expecting value')
        session.post.return_value = resp

        assert todoist.create_task({'content': 'x'}) == {'content': 'x'}


class TestGoogleTasksIntegration:
    """Google Tasks client"""

    def test_find_task_list_pages(self):
        service = MagicMock()
        service.tasklists().list().execute.side_effect = [
            {'items': [{'id': 'a', 'title': 'Work'}], 'nextPageToken': 'p2'},
            {'items': [{'id': 'b', 'title': 'My Tasks'}, {'id': 'c', 'title': 'My Tasks'}]},
        ]

        assert GoogleTasksIntegration(service).find_task_list_id('My Tasks') == 'b'

    def test_find_task_list_missing(self):
        service = MagicMock()
        service.tasklists().list().execute.return_value = {}

        assert GoogleTasksIntegration(service).find_task_list_id('Nope') is None

    def test_get_open_tasks_filters(self):
        service = MagicMock()
        service.tasks().list().execute.return_value = {'items': [{'id': 't1'}]}

        tasks = GoogleTasksIntegration(service).get_open_tasks('list-1')

        assert tasks == [{'id': 't1'}]
        service.tasks().list.assert_called_with(
            maxResults=100, pageToken=None,
            tasklist='list-1', showCompleted=False, showHidden=False,
        )

    def test_listing_error(self):
        service = MagicMock()
        service.tasks().list().execute.side_effect = http_error(500)

        with pytest.raises(GoogleTasksError):
            GoogleTasksIntegration(service).get_open_tasks('list-1')

    def test_delete(self):
        service = MagicMock()
        integration = GoogleTasksIntegration(service)

        assert integration.delete_task('list-1', 't1') is True
        service.tasks().delete.assert_called_with(tasklist='list-1', task='t1')

        service.tasks().delete().execute.side_effect = http_error(404)
        assert integration.delete_task('list-1', 't1') is False

    @pytest.mark.parametrize('error', [
        TimeoutError('timed out'),
        httplib2.ServerNotFoundError('dns'),
        ConnectionResetError('reset'),
    ])
    def test_delete_transport_error_returns_false(self, error):
        service = MagicMock()
        service.tasks().delete().execute.side_effect = error

        assert GoogleTasksIntegration(service).delete_task('list-1', 't1') is False

    def test_listing_transport_error(self):
        service = MagicMock()
        service.tasks().list().execute.side_effect = TimeoutError('timed out')

        with pytest.raises(GoogleTasksError):
            GoogleTasksIntegration(service).get_open_tasks('list-1')


class TestGoogleDriveIntegration:
    """Google Drive client"""

    def test_get_folder(self):
        service = MagicMock()
        service.files().get().execute.return_value = {
            'id': 'f', 'name': 'Reports', 'mimeType': 'application/vnd.google-apps.folder',
        }
        assert GoogleDriveIntegration(service).get_folder('f')['name'] == 'Reports'

    def test_get_folder_not_a_folder(self):
        service = MagicMock()
        service.files().get().execute.return_value = {'id': 'f', 'mimeType': 'application/pdf'}
        assert GoogleDriveIntegration(service).get_folder('f') is None

    def test_get_folder_not_found(self):
        service = MagicMock()
        service.files().get().execute.side_effect = http_error(404)
        assert GoogleDriveIntegration(service).get_folder('f') is None

    def test_get_folder_other_error(self):
        service = MagicMock()
        service.files().get().execute.side_effect = http_error(500)
        with pytest.raises(GoogleDriveError):
            GoogleDriveIntegration(service).get_folder('f')

    def test_find_files_by_name_query(self):
        service = MagicMock()
        service.files().list().execute.return_value = {'files': [{'id': 'x'}]}

        files = GoogleDriveIntegration(service).find_files_by_name('folder', "Bob's.pdf")

        assert files == [{'id': 'x'}]
        query = service.files().list.call_args.kwargs['q']
        assert query == "name = 'Bob\\'s.pdf' and 'folder' in parents and trashed = false"

    def test_export_pdf(self):
        service = MagicMock()
        service.files().export().execute.return_value = b'%PDF-1.4'
        service.files().create().execute.return_value = {'id': 'pdf', 'name': 'r.pdf'}

        created = GoogleDriveIntegration(service).export_pdf('sheet', 'folder', 'r.pdf')

        assert created['id'] == 'pdf'
        service.files().export.assert_called_with(fileId='sheet', mimeType='application/pdf')
        body = service.files().create.call_args.kwargs['body']
        assert body == {'name': 'r.pdf', 'parents': ['folder'], 'mimeType': 'application/pdf'}

    def test_export_pdf_failure(self):
        service = MagicMock()
        service.files().export().execute.side_effect = http_error(403)
        with pytest.raises(GoogleDriveError):
            GoogleDriveIntegration(service).export_pdf('sheet', 'folder', 'r.pdf')

    def test_trash_file(self):
        service = MagicMock()
        integration = GoogleDriveIntegration(service)

        assert integration.trash_file('x') is True
        service.files().update.assert_called_with(
            fileId='x', body={'trashed': True}, supportsAllDrives=True)

        service.files().update().execute.side_effect = http_error(500)
        assert integration.trash_file('x') is False

    def test_find_files_transport_error(self):
        service = MagicMock()
        service.files().list().execute.side_effect = httplib2.ServerNotFoundError('dns')

        with pytest.raises(GoogleDriveError):
            GoogleDriveIntegration(service).find_files_by_name('folder', 'r.pdf')

    @pytest.mark.parametrize('error', [TimeoutError('timed out'), OSError('broken pipe')])
    def test_trash_file_transport_error(self, error):
        service = MagicMock()
        service.files().update().execute.side_effect = error

        assert GoogleDriveIntegration(service).trash_file('x') is False

    def test_get_folder_transport_error(self):
        service = MagicMock()
        service.files().get().execute.side_effect = TimeoutError('timed out')

        with pytest.raises(GoogleDriveError):
            GoogleDriveIntegration(service).get_folder('f')


class TestGoogleSheetsIntegration:
    """Google Sheets client"""

    def test_create_spreadsheet(self):
        service = MagicMock()
        service.spreadsheets().create().execute.return_value = {
            'spreadsheetId': 's1', 'sheets': [{'properties': {'sheetId': 7}}],
        }

        created = GoogleSheetsIntegration(service).create_spreadsheet('Report')

        assert created == {'spreadsheet_id': 's1', 'sheet_id': 7}
        body = service.spreadsheets().create.call_args.kwargs['body']
        assert body['properties']['title'] == 'Report'
        assert body['sheets'][0]['properties']['title'] == 'Uncompleted Tasks'

    def test_append_rows_raw(self):
        service = MagicMock()
        rows = [['Title'], [''], ['=not a formula', 'today']]

        GoogleSheetsIntegration(service).append_rows('s1', rows)

        kwargs = service.spreadsheets().values().append.call_args.kwargs
        assert kwargs['body'] == {'values': rows}
        assert kwargs['valueInputOption'] == 'RAW'

    def test_formatting_requests(self):
        service = MagicMock()

        GoogleSheetsIntegration(service).apply_report_formatting('s1', 7, 0, [2, 6], [3, 7])

        requests_ = service.spreadsheets().batchUpdate.call_args.kwargs['body']['requests']
        merges = [r['mergeCells']['range']['startRowIndex'] for r in requests_ if 'mergeCells' in r]
        assert merges == [0, 2, 6]

    def test_create_failure(self):
        service = MagicMock()
        service.spreadsheets().create().execute.side_effect = http_error(403)
        with pytest.raises(GoogleSheetsError):
            GoogleSheetsIntegration(service).create_spreadsheet('Report')

    def test_formatting_transport_error(self):
        service = MagicMock()
        service.spreadsheets().batchUpdate().execute.side_effect = TimeoutError('timed out')

        with pytest.raises(GoogleSheetsError):
            GoogleSheetsIntegration(service).apply_report_formatting('s1', 7, 0, [], [])


class TestGoogleAuth:
    """Token loading"""

    def test_missing_token_file(self, tmp_path):
        from integrations.google_auth import GoogleCredentialsError, SYNC_SCOPES, load_credentials

        with pytest.raises(GoogleCredentialsError, match='not found'):
            load_credentials(str(tmp_path / 'token.json'), SYNC_SCOPES)

    def test_pipeline_reports_missing_token_as_configuration(self, tmp_path):
        from task_relay import ConfigurationMissing, SyncConfig, SyncPipeline

        config = SyncConfig(
            todoist_api_token='t',
            task_list_name='My Tasks',
            google_token_file=str(tmp_path / 'token.json'),
        )
        with pytest.raises(ConfigurationMissing):
            SyncPipeline(config, todoist=MagicMock())

    def test_refreshed_token_unwritable_still_returns_credentials(self, tmp_path, monkeypatch, caplog):
        from pathlib import Path
        from integrations import google_auth

        token_file = tmp_path / 'token.json'
        token_file.write_text('{}')

        creds = MagicMock(valid=False, expired=True, refresh_token='refresh')
        creds.to_json.return_value = '{"token": "new"}'
        monkeypatch.setattr(google_auth.Credentials, 'from_authorized_user_file',
                            MagicMock(return_value=creds))

        def read_only(self, data):
            raise PermissionError('read-only file system')

        monkeypatch.setattr(Path, 'write_text', read_only)

        with caplog.at_level('WARNING', logger='TaskRelay.GoogleAuth'):
            loaded = google_auth.load_credentials(str(token_file), google_auth.SYNC_SCOPES)

        assert loaded is creds
        creds.refresh.assert_called_once()
        assert 'Could not save refreshed Google token' in caplog.text

    def test_report_pipeline_loads_credentials_once(self, monkeypatch):
        from integrations import google_auth
        from task_relay import ReportConfig, ReportPipeline

        credentials = object()
        load = MagicMock(return_value=credentials)
        build = MagicMock(side_effect=lambda name, version, creds: MagicMock(api=name))
        monkeypatch.setattr(google_auth, 'load_credentials', load)
        monkeypatch.setattr(google_auth, 'build_service', build)

        config = ReportConfig('token', 'folder-1')
        pipeline = ReportPipeline(config, todoist=MagicMock())

        load.assert_called_once_with(config.google_token_file, google_auth.REPORT_SCOPES)
        assert [c.args for c in build.call_args_list] == [
            ('sheets', 'v4', credentials),
            ('drive', 'v3', credentials),
        ]
        assert pipeline._sheets.service.api == 'sheets'
        assert pipeline._drive.service.api == 'drive'
