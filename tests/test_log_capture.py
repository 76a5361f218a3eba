"""
Tests for container log capture.
"""

from unittest.mock import Mock, patch

import pytest

from core.log_capture import ComposeLogCapture


@pytest.fixture
def capture(tmp_path):
    return ComposeLogCapture("/x/docker-compose.yml", "proj", tmp_path)


class TestComposeLogCapture:

    def test_command(self, capture):
        assert capture.build_command() == [
            "docker-compose", "--file", "/x/docker-compose.yml", "--project-name", "proj",
            "logs", "--follow", "--no-color", "--timestamps"
        ]

    def test_start_streams_into_log_file(self, capture, tmp_path):
        with patch("core.log_capture.subprocess.Popen") as popen:
            assert capture.start()

        args, kwargs = popen.call_args
        assert args[0] == capture.build_command()
        assert str(kwargs["stdout"].name) == str(tmp_path / "compose.log")
        assert (tmp_path / "compose.log").exists()
        capture.stop()

    def test_missing_tool_is_not_fatal(self, capture):
        with patch("core.log_capture.subprocess.Popen", side_effect=FileNotFoundError("docker-compose")):
            assert capture.start() is False

        assert capture.process is None
        capture.stop()

    def test_stop_is_idempotent(self, capture):
        process = Mock(pid=4321)
        process.poll.return_value = None

        with patch("core.log_capture.subprocess.Popen", return_value=process), \
                patch("core.log_capture.terminate_process_tree") as terminate:
            capture.start()
            capture.stop()
            capture.stop()

        terminate.assert_called_once_with(4321)
        process.wait.assert_called_once()

    def test_exited_process_is_not_killed(self, capture):
        process = Mock(pid=4321)
        process.poll.return_value = 1

        with patch("core.log_capture.subprocess.Popen", return_value=process), \
                patch("core.log_capture.terminate_process_tree") as terminate:
            capture.start()
            capture.stop()

        terminate.assert_not_called()

    def test_start_twice_rejected(self, capture):
        with patch("core.log_capture.subprocess.Popen"):
            capture.start()
            with pytest.raises(RuntimeError):
                capture.start()
        capture.stop()

    def test_start_after_stop_rejected(self, capture):
        capture.stop()
        with pytest.raises(RuntimeError):
            capture.start()

    def test_stop_without_start(self, capture):
        with patch("core.log_capture.terminate_process_tree") as terminate:
            capture.stop()
        terminate.assert_not_called()

    def test_context_manager(self, capture):
        process = Mock(pid=1)
        process.poll.return_value = None
        with patch("core.log_capture.subprocess.Popen", return_value=process), \
                patch("core.log_capture.terminate_process_tree") as terminate:
            with capture as running:
                assert running.running
            terminate.assert_called_once_with(1)
