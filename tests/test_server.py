"""
Tests for the HTTP control surface.

Run with: pytest tests/test_server.py
"""

import asyncio
from unittest.mock import MagicMock, patch

import pytest

from taskqueue import __version__
from taskqueue.server import create_app, run_server
from taskqueue.task_queue import TaskQueue


@pytest.fixture
def queue():
    return TaskQueue(priorities=3)


@pytest.fixture
def client(queue):
    app = create_app(queue, config={'TESTING': True})
    return app.test_client()


class TestReadEndpoints:
    """Test inspection endpoints."""

    def test_health(self, client):
        response = client.get('/health')
        data = response.get_json()

        assert response.status_code == 200
        assert data['status'] == 'healthy'
        assert data['version'] == __version__

    def test_status(self, client, queue):
        queue.register_task(lambda: None, 1)
        queue.register_task(lambda: None, 1)
        queue.register_task(lambda: None, 3)

        data = client.get('/status').get_json()

        assert data['levels'] == [2, 0, 1]
        assert data['pending'] == 3
        assert data['deferred'] == 0
        assert data['run_state'] == 'idle'

    def test_config(self, client):
        data = client.get('/config').get_json()

        assert data == {
            'priorities': 3,
            'auto_run': False,
            'task_separation': 0,
            'main_thread_yield_time': 5
        }

    def test_queue_built_from_app_config(self):
        app = create_app(config={'PRIORITIES': 4, 'TASK_SEPARATION_MS': 10})
        data = app.test_client().get('/config').get_json()

        assert data['priorities'] == 4
        assert data['task_separation'] == 10
        assert app.extensions['task_queue'].tasks.max == 3

    def test_invalid_app_config(self):
        with pytest.raises(ValueError):
            create_app(config={'PRIORITIES': 0})

    def test_not_found(self, client):
        response = client.get('/missing')

        assert response.status_code == 404
        assert response.get_json() == {'error': 'Not found'}

    def test_method_not_allowed(self, client):
        response = client.get('/clear')

        assert response.status_code == 405


class TestControlEndpoints:
    """Test endpoints mutating the queue."""

    def test_cancel_when_idle(self, client):
        response = client.post('/cancel')

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_cancel_active_run(self, client, queue):
        task = MagicMock()
        queue.register_task(task, 1)
        queue.execute_all()

        response = client.post('/cancel')
        await asyncio.sleep(0.01)

        assert response.status_code == 200
        task.assert_not_called()
        assert queue.get_cancel_fn() is None
        assert queue.tasks.length == 1

    @pytest.mark.asyncio
    async def test_clear(self, client, queue):
        noop = MagicMock()
        queue.register_task(noop, 2)
        queue.defer_task(noop, 10)

        response = client.post('/clear')
        await asyncio.sleep(0.03)

        assert response.get_json()['cleared'] == {'pending': 1, 'deferred': 1}
        assert queue.tasks.is_empty
        assert queue.deferred_tasks.is_empty
        noop.assert_not_called()

    @pytest.mark.asyncio
    async def test_clear_deferred_only(self, client, queue):
        noop = MagicMock()
        queue.register_task(noop, 2)
        queue.defer_task(noop, 10)

        response = client.post('/clear/deferred')

        assert response.get_json()['cleared'] == {'deferred': 1}
        assert queue.tasks.length == 1
        assert queue.deferred_tasks.is_empty


class TestRunServer:
    """Test serving a caller-owned queue."""

    def test_serves_given_queue_and_loop(self, queue):
        loop = MagicMock()

        with patch('taskqueue.server.create_app', wraps=create_app) as factory, \
                patch('taskqueue.server.Flask.run') as run:
            run_server(queue, loop, port=9000)

        factory.assert_called_once_with(queue, loop=loop, config=None)
        run.assert_called_once_with(host='0.0.0.0', port=9000, debug=False, use_reloader=False)
        loop.run_forever.assert_not_called()


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
