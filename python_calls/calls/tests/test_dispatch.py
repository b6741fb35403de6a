"""
Unit tests for background dispatch of call processing.
"""
from unittest.mock import patch

from calls.services.dispatch import dispatch_processing, get_fallback_executor


class TestDispatchProcessing:
    """Tests for dispatch_processing."""

    @patch('calls.tasks.process_call_completion')
    def test_enqueued_on_celery(self, mock_task):
        result = dispatch_processing('c1')

        assert result is None
        mock_task.apply_async.assert_called_once_with(('c1',), retry=False)
        mock_task.assert_not_called()

    @patch('calls.tasks.process_call_completion')
    def test_falls_back_to_worker_pool_when_broker_down(self, mock_task):
        """Test the task runs in-process when it cannot be enqueued."""
        mock_task.apply_async.side_effect = ConnectionError('broker unavailable')

        future = dispatch_processing('c1')

        assert future is not None
        future.result(timeout=5)
        mock_task.assert_called_once_with('c1')

    @patch('calls.tasks.process_call_completion')
    def test_fallback_failure_is_swallowed(self, mock_task):
        mock_task.apply_async.side_effect = ConnectionError('broker unavailable')
        mock_task.side_effect = RuntimeError('processing crashed')

        future = dispatch_processing('c1')

        assert future.result(timeout=5) is None
        assert future.exception() is None

    @patch('calls.services.dispatch.get_fallback_executor')
    @patch('calls.tasks.process_call_completion')
    def test_never_raises(self, mock_task, mock_executor):
        mock_task.apply_async.side_effect = ConnectionError('broker unavailable')
        mock_executor.return_value.submit.side_effect = RuntimeError('cannot schedule new futures')

        assert dispatch_processing('c1') is None

    def test_executor_is_shared(self):
        assert get_fallback_executor() is get_fallback_executor()


class TestBrokerPublishSettings:
    """Tests for the Celery publish settings used by dispatch."""

    def test_publish_does_not_block_on_broker(self):
        from call_gateway.celery import app

        assert app.conf.task_publish_retry is False
        assert app.conf.broker_connection_timeout <= 2
        assert app.conf.broker_transport_options['socket_connect_timeout'] <= 2
        assert app.conf.broker_transport_options['socket_timeout'] <= 2
