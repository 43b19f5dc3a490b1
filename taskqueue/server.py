"""
HTTP control surface for a task queue.

This module provides a Flask-based REST API to inspect a running TaskQueue
and to cancel or clear its pending work. Tasks themselves are callables and
can only be registered in-process.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from flask import Flask, jsonify

from . import __version__
from .host import AsyncioHost
from .task_queue import TaskQueue
from .types import TaskQueueConfig


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='[%(asctime)s] %(levelname)s: %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)


def create_app(
    task_queue: Optional[TaskQueue] = None,
    loop: Optional[asyncio.AbstractEventLoop] = None,
    config: Dict[str, Any] = None
) -> Flask:
    """
    Create and configure the Flask application.

    Args:
        task_queue: Queue to expose. Built from the app config when omitted.
        loop: Event loop the queue runs on. Mutations are handed to it with
            ``call_soon_threadsafe``; without a loop they run inline.
        config: Optional configuration dictionary

    Returns:
        Configured Flask app
    """
    app = Flask(__name__)

    # Default configuration
    app.config.update({
        'TESTING': False,
        'PRIORITIES': 1,
        'AUTO_RUN': False,
        'TASK_SEPARATION_MS': 0,
        'MAIN_THREAD_YIELD_MS': 5,
    })

    # Apply custom config
    if config:
        app.config.update(config)

    if task_queue is None:
        queue_config = TaskQueueConfig.from_mapping({
            'priorities': app.config['PRIORITIES'],
            'auto_run': app.config['AUTO_RUN'],
            'task_separation': app.config['TASK_SEPARATION_MS'],
            'main_thread_yield_time': app.config['MAIN_THREAD_YIELD_MS']
        })
        task_queue = TaskQueue(queue_config, host=AsyncioHost(loop))

    def dispatch(call: Callable[[], None]) -> None:
        if loop is None:
            call()
        else:
            loop.call_soon_threadsafe(call)

    @app.route('/health', methods=['GET'])
    def health():
        """Health check endpoint."""
        return jsonify({
            'status': 'healthy',
            'service': 'task-queue',
            'version': __version__,
            'timestamp': datetime.now(timezone.utc).isoformat()
        })

    @app.route('/status', methods=['GET'])
    def status():
        """
        Snapshot of pending work.

        Response:
        {
            "levels": [2, 0, 1],
            "pending": 3,
            "deferred": 1,
            "subscriptions": 0,
            "run_state": "running"
        }
        """
        return jsonify({
            'levels': [bucket.length for bucket in task_queue.tasks],
            'pending': task_queue.tasks.length,
            'deferred': task_queue.deferred_tasks.length,
            'subscriptions': task_queue.subscriptions.length,
            'run_state': task_queue.run_state.value
        })

    @app.route('/config', methods=['GET'])
    def get_config():
        """Get the queue configuration."""
        return jsonify(task_queue.config.to_dict())

    @app.route('/cancel', methods=['POST'])
    def cancel_run():
        """Cancel the active execution run."""
        cancel = task_queue.get_cancel_fn()
        if cancel is None:
            return jsonify({'error': 'No active run'}), 404
        dispatch(cancel)
        logger.info("Cancelled active run")
        return jsonify({'status': 'cancelled'}), 200

    @app.route('/clear', methods=['POST'])
    def clear_pending():
        """Clear pending prioritized and deferred tasks."""
        cleared = {
            'pending': task_queue.tasks.length,
            'deferred': task_queue.deferred_tasks.length
        }
        dispatch(task_queue.clear_pending_tasks)
        logger.info(f"Cleared {cleared['pending']} pending and {cleared['deferred']} deferred tasks")
        return jsonify({'status': 'cleared', 'cleared': cleared}), 200

    @app.route('/clear/deferred', methods=['POST'])
    def clear_deferred():
        """Clear deferred tasks only."""
        count = task_queue.deferred_tasks.length
        dispatch(task_queue.clear_deferred_tasks)
        logger.info(f"Cleared {count} deferred tasks")
        return jsonify({'status': 'cleared', 'cleared': {'deferred': count}}), 200

    @app.errorhandler(404)
    def not_found(error):
        """Handle 404 errors."""
        return jsonify({'error': 'Not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        """Handle 405 errors."""
        return jsonify({'error': 'Method not allowed'}), 405

    @app.errorhandler(500)
    def internal_error(error):
        """Handle 500 errors."""
        logger.error(f"Internal server error: {error}")
        return jsonify({'error': 'Internal server error'}), 500

    app.extensions['task_queue'] = task_queue
    return app


def run_server(
    task_queue: TaskQueue,
    loop: asyncio.AbstractEventLoop,
    host: str = '0.0.0.0',
    port: int = 8001,
    debug: bool = False,
    config: Dict[str, Any] = None
) -> None:
    """
    Serve the control surface for a caller-owned task queue.

    Tasks are registered in-process, so the caller keeps both the queue and
    its event loop. The loop must be running in another thread; this call
    blocks the calling thread with the HTTP server.

    Args:
        task_queue: Queue to expose
        loop: Event loop the queue runs on
        host: Host to bind to
        port: Port to listen on
        debug: Enable debug mode
        config: Optional configuration dictionary
    """
    logger.info("=" * 50)
    logger.info("  Task Queue Control Server")
    logger.info("=" * 50)
    logger.info("")
    logger.info(f"Starting server on {host}:{port}")
    logger.info("")
    logger.info("Endpoints:")
    logger.info(f"  GET  {host}:{port}/health         - Health check")
    logger.info(f"  GET  {host}:{port}/status         - Pending work")
    logger.info(f"  GET  {host}:{port}/config         - Queue configuration")
    logger.info(f"  POST {host}:{port}/cancel         - Cancel active run")
    logger.info(f"  POST {host}:{port}/clear          - Clear pending tasks")
    logger.info(f"  POST {host}:{port}/clear/deferred - Clear deferred tasks")
    logger.info("")

    app = create_app(task_queue, loop=loop, config=config)
    app.run(host=host, port=port, debug=debug, use_reloader=False)
