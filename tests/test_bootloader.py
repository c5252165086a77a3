"""Tests for storage/bootloader.py - GRUB installation."""

import subprocess
from unittest.mock import Mock, patch

import pytest

from keybuilder.storage import bootloader
from keybuilder.storage.exceptions import BootloaderError
from keybuilder.storage.mount import TargetDirs


@pytest.fixture
def shared_dir(tmp_path):
    """Shared resources directory laid out like the installed package data."""
    grub = tmp_path / "share" / "grub"
    (grub / "themes").mkdir(parents=True)
    (grub / "fonts").mkdir()
    (grub / "locale").mkdir()
    (grub / "grub.cfg").write_text("source $prefix/iso.cfg\n")
    (grub / "iso.cfg").write_text("# iso entries\n")
    (grub / "themes" / "background.png").write_bytes(b"\x89PNG")
    (grub / "fonts" / "unicode.pf2").write_bytes(b"PFF2")
    return tmp_path / "share"


@pytest.fixture
def targets(tmp_path):
    system = tmp_path / "system"
    esp = tmp_path / "esp"
    system.mkdir()
    esp.mkdir()
    return TargetDirs(system=system, esp=esp)


class TestGrubInstallCommands:
    """Tests for grub_install_commands() function."""

    def test_bios_and_both_efi_targets(self, targets, tmp_path):
        commands = bootloader.grub_install_commands("/dev/sdb", targets, tmp_path / "locale")

        assert [command[1] for command in commands] == [
            "--target=i386-pc",
            "--target=x86_64-efi",
            "--target=i386-efi",
        ]
        assert commands[0][-1] == "/dev/sdb"
        for command in commands:
            assert f"--boot-directory={targets.system}" in command
        for command in commands[1:]:
            assert "--removable" in command
            assert "--no-nvram" in command
            assert f"--efi-directory={targets.esp}" in command


class TestGrubEnvironment:
    """Tests for grub_environment() function."""

    def test_order_and_values(self):
        env = bootloader.grub_environment("iso/", "1234-abcd", "de")

        assert [key for key, _ in env] == [
            "pager",
            "sys_uuid",
            "iso_dir",
            "locale_dir",
            "lang",
            "gfxmode",
            "gfxterm_font",
            "color_normal",
            "color_highlight",
            "timeout_style",
            "timeout",
            "default",
        ]
        assert dict(env)["iso_dir"] == "/iso"
        assert dict(env)["sys_uuid"] == "1234-abcd"


class TestInstallBootloader:
    """Tests for install_bootloader() function."""

    @patch("keybuilder.storage.bootloader.get_device_property", return_value="1234-abcd")
    @patch("keybuilder.storage.bootloader.run_command")
    def test_full_installation(self, mock_run, _mock_uuid, sized_plan, targets, shared_dir):
        mock_run.return_value = Mock(returncode=0, stdout="", stderr="")

        bootloader.install_bootloader(
            "/dev/sdb", sized_plan, targets, shared_dir, "iso", lang="en_US.UTF-8"
        )

        commands = [c.args[0] for c in mock_run.call_args_list]
        assert [command[0] for command in commands[:3]] == ["grub-install"] * 3
        editenv = [command for command in commands if command[0] == "grub-editenv"]
        assert len(editenv) == len(bootloader.GRUB_ENVIRONMENT) + 3
        assert editenv[0] == [
            "grub-editenv",
            str(targets.system / "grub" / "grubenv"),
            "set",
            "pager=1",
        ]
        assert ["set", "lang=en"] == editenv[4][2:]

        assert (targets.system / "iso").is_dir()
        assert (targets.system / "grub" / "grub.cfg").is_file()
        assert (targets.system / "grub" / "iso.cfg").is_file()
        assert (targets.system / "grub" / "themes" / "background.png").is_file()
        assert (targets.system / "grub" / "fonts" / "unicode.pf2").is_file()

    @patch("keybuilder.storage.bootloader.get_device_property", return_value="1234")
    @patch("keybuilder.storage.bootloader.run_command")
    def test_grub_install_failure(self, mock_run, _mock_uuid, sized_plan, targets, shared_dir):
        mock_run.side_effect = subprocess.CalledProcessError(1, ["grub-install"])

        with pytest.raises(BootloaderError) as exc_info:
            bootloader.install_bootloader("/dev/sdb", sized_plan, targets, shared_dir, "iso")

        assert exc_info.value.command[0] == "grub-install"

    @patch("keybuilder.storage.bootloader.get_device_property", return_value="1234")
    @patch("keybuilder.storage.bootloader.run_command")
    def test_missing_resources(self, mock_run, _mock_uuid, sized_plan, targets, tmp_path):
        """Test that an unreadable resources directory is reported as a GRUB error."""
        mock_run.return_value = Mock(returncode=0)
        broken = tmp_path / "broken"
        (broken / "grub").mkdir(parents=True)
        (broken / "grub" / "grub.cfg").mkdir()

        with pytest.raises(BootloaderError):
            bootloader.install_bootloader("/dev/sdb", sized_plan, targets, broken, "iso")
