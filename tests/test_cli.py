import unittest

from click.testing import CliRunner

from music_share.client.cli import cli


class TestCLI(unittest.TestCase):

    def setUp(self):
        self.runner = CliRunner()

    def test_upload_rejects_non_audio_before_sending(self):
        with self.runner.isolated_filesystem():
            with open("doc.pdf", "wb") as fh:
                fh.write(b"%PDF-1.4")

            result = self.runner.invoke(cli, ["--api", "http://127.0.0.1:9", "upload", "doc.pdf"])

        self.assertEqual(result.exit_code, 1)
        self.assertIn("Please select a valid MP3/Audio file.", result.output)

    def test_help_lists_commands(self):
        result = self.runner.invoke(cli, ["--help"])

        self.assertEqual(result.exit_code, 0)
        self.assertIn("上传音频文件并分享链接", result.output)
        for command in ["upload", "show", "download"]:
            self.assertIn(command, result.output)

    def test_show_rejects_non_share_link(self):
        result = self.runner.invoke(cli, ["--api", "http://127.0.0.1:9", "show", "https://app.test/other/abc"])

        self.assertEqual(result.exit_code, 2)
        self.assertIn("not a share link", result.output)


if __name__ == "__main__":
    unittest.main()
