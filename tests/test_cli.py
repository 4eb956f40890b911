import io
import unittest
from contextlib import redirect_stderr
from unittest.mock import patch

from botocore.exceptions import NoCredentialsError

from s3nav.app import main, parse_s3_path
from s3nav.config import AppConfig
from s3nav.model import containers_listing, entries_listing


class TestParseS3Path(unittest.TestCase):
    def test_prefix_paths(self) -> None:
        self.assertEqual(parse_s3_path("s3://bucket/p1/p2/"), ("bucket", "p1/p2/"))
        self.assertEqual(parse_s3_path("s3://bucket/p1/p2/k"), ("bucket", "p1/p2/"))

    def test_bucket_only_paths(self) -> None:
        self.assertEqual(parse_s3_path("s3://bucket"), ("bucket", ""))
        self.assertEqual(parse_s3_path("s3://bucket/"), ("bucket", ""))
        self.assertEqual(parse_s3_path("s3://bucket/key"), ("bucket", ""))

    def test_scheme_is_required(self) -> None:
        with self.assertRaises(ValueError):
            parse_s3_path("bucket/prefix/")

    def test_bucket_is_required(self) -> None:
        for value in ("s3://", "s3:///x", "s3:///p/"):
            with self.assertRaises(ValueError):
                parse_s3_path(value)


class TestMain(unittest.TestCase):
    def setUp(self) -> None:
        config_patch = patch("s3nav.app.load_config", return_value=AppConfig())
        config_patch.start()
        self.addCleanup(config_patch.stop)

    def test_bad_path_exits_before_ui(self) -> None:
        with patch("s3nav.app.S3Navigator") as navigator, redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit) as ctx:
                main(["bucket/prefix"])
        self.assertEqual(ctx.exception.code, 2)
        navigator.assert_not_called()

    def test_empty_bucket_exits_before_ui(self) -> None:
        with patch("s3nav.app.S3Navigator") as navigator, redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit) as ctx:
                main(["s3:///logs/"])
        self.assertEqual(ctx.exception.code, 2)
        navigator.assert_not_called()

    def test_startup_listing_failure_returns_error(self) -> None:
        stderr = io.StringIO()
        with patch(
            "s3nav.app.load_initial_listing", side_effect=NoCredentialsError()
        ), patch("s3nav.app.S3Navigator") as navigator, patch(
            "s3nav.app.configure_logging"
        ), redirect_stderr(stderr):
            code = main(["s3://bucket-a/"])
        self.assertEqual(code, 1)
        self.assertIn("Unable to locate credentials", stderr.getvalue())
        navigator.assert_not_called()

    def test_path_argument_starts_at_prefix(self) -> None:
        scopes = []

        async def fake_load(_service, scope):
            scopes.append(scope)
            return entries_listing(*scope)

        with patch("s3nav.app.load_initial_listing", side_effect=fake_load), patch(
            "s3nav.app.S3Navigator"
        ) as navigator, patch("s3nav.app.configure_logging"):
            code = main(["s3://bucket-a/logs/2024/app.log", "--profile", "dev"])

        self.assertEqual(code, 0)
        self.assertEqual(scopes, [("bucket-a", "logs/2024/")])
        controller = navigator.call_args.args[0]
        self.assertEqual(controller.stack.scope, ("bucket-a", "logs/2024/"))
        self.assertEqual(controller.service.profile, "dev")
        navigator.return_value.run.assert_called_once_with()

    def test_no_argument_starts_at_bucket_list(self) -> None:
        async def fake_load(_service, scope):
            self.assertIsNone(scope)
            return containers_listing([])

        with patch("s3nav.app.load_initial_listing", side_effect=fake_load), patch(
            "s3nav.app.S3Navigator"
        ) as navigator, patch("s3nav.app.configure_logging"):
            code = main(["--endpoint-url", "http://localhost:9000"])

        self.assertEqual(code, 0)
        controller = navigator.call_args.args[0]
        self.assertEqual(len(controller.stack), 1)
        self.assertIsNone(controller.stack.scope)


if __name__ == "__main__":
    unittest.main()
