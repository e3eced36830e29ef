"""
Tests for camera list loading and URL resolution.
"""

import pytest

from camlauncher.cameras.camera_config import (
    CameraConfig,
    RowError,
    cameras_from_records,
    load_cameras,
    load_cameras_file,
    parse_camera_rows,
    sanitize_name,
)
from camlauncher.cameras.url_resolver import ModelRule, URLResolver, create_url_resolver
from camlauncher.utils.config import Config
from camlauncher.utils.exceptions import ConfigError, UnsupportedModelError


ROWS = [
    "Reolink\tGarage West\t192.168.1.48\n",
    "Reolink\tGarage East\t192.168.1.49\n",
    "Reolink\tPeck West Alley\t192.168.1.52\n",
]


class TestCameraRows:
    """Test tab-delimited camera row parsing."""

    def test_parse_rows(self):
        """Test rows become cameras in input order."""
        cameras = parse_camera_rows(ROWS)

        assert [c.name for c in cameras] == ['Garage West', 'Garage East', 'Peck West Alley']
        assert cameras[0] == CameraConfig('Reolink', 'Garage West', '192.168.1.48')

    def test_comments_and_blank_lines_ignored(self):
        """Test comments and blank lines are skipped."""
        cameras = parse_camera_rows(["# model\tname\taddress\n", "\n"] + ROWS[:1])

        assert len(cameras) == 1

    def test_short_row(self):
        """Test a row with fewer than three fields is rejected."""
        with pytest.raises(ConfigError) as exc_info:
            parse_camera_rows(ROWS[:1] + ["Reolink\tNo Address\n"])

        assert "row 2" in str(exc_info.value)

    def test_space_separated_row_is_short(self):
        """Test only tabs separate fields."""
        with pytest.raises(ConfigError):
            parse_camera_rows(["Reolink Garage 192.168.1.48\n"])

    def test_empty_field(self):
        """Test an empty field is rejected."""
        with pytest.raises(ConfigError):
            parse_camera_rows(["Reolink\t\t192.168.1.48\n"])

    def test_extra_fields_ignored(self):
        """Test fields after the address are ignored."""
        cameras = parse_camera_rows(["Reolink\tGarage\t192.168.1.48\tspare\n"])

        assert cameras[0].address == '192.168.1.48'

    def test_duplicate_name(self):
        """Test a repeated camera name rejects the batch."""
        with pytest.raises(ConfigError) as exc_info:
            parse_camera_rows(ROWS + ["Reolink\tGarage West\t192.168.1.60\n"])

        assert "Garage West" in str(exc_info.value)

    def test_skip_invalid_rows(self):
        """Test malformed rows can be collected instead of raised."""
        errors = []
        cameras = parse_camera_rows(
            ROWS[:1] + ["Reolink\tBroken\n"] + ROWS[1:2],
            skip_invalid=True,
            errors=errors
        )

        assert [c.name for c in cameras] == ['Garage West', 'Garage East']
        assert len(errors) == 1
        assert errors[0].line == 2
        assert errors[0].camera_name == 'Broken'

    def test_duplicates_rejected_even_when_skipping(self):
        """Test duplicate names are never skipped."""
        with pytest.raises(ConfigError):
            parse_camera_rows(ROWS + ROWS[:1], skip_invalid=True)

    def test_row_error_without_name(self):
        """Test a row error without a name field uses a row marker."""
        error = RowError(line=4, text="Reolink", message="short")

        assert error.camera_name == "<row 4>"

    def test_load_file(self, tmp_path):
        """Test loading cameras from a file."""
        path = tmp_path / "cameras.tsv"
        path.write_text(''.join(ROWS))

        assert len(load_cameras_file(path)) == 3

    def test_load_missing_file(self, tmp_path):
        """Test a missing camera list is a config error."""
        with pytest.raises(ConfigError):
            load_cameras_file(tmp_path / "missing.tsv")


class TestCameraConfig:
    """Test CameraConfig and structured loading."""

    def test_safe_name(self):
        """Test whitespace becomes underscores."""
        camera = CameraConfig('Reolink', 'Peck West\tAlley', '192.168.1.52')

        assert camera.safe_name == 'Peck_West_Alley'

    def test_sanitize_path_separators(self):
        """Test names cannot escape the run directory."""
        assert sanitize_name('../garage/west') == '.._garage_west'

    def test_frozen(self):
        """Test cameras are immutable."""
        camera = CameraConfig('Reolink', 'Garage', '192.168.1.48')

        with pytest.raises(AttributeError):
            camera.name = 'Other'

    def test_from_records(self):
        """Test structured records."""
        cameras = cameras_from_records([
            {'model': 'Reolink', 'name': 'Garage', 'address': '192.168.1.48'},
        ])

        assert cameras[0].model == 'Reolink'

    def test_record_missing_field(self):
        """Test a record without an address is rejected."""
        with pytest.raises(ConfigError) as exc_info:
            cameras_from_records([{'model': 'Reolink', 'name': 'Garage'}])

        assert "address" in str(exc_info.value)

    def test_load_from_config(self, tmp_path):
        """Test file rows and inline entries combine."""
        path = tmp_path / "cameras.tsv"
        path.write_text(''.join(ROWS))
        config = Config({'cameras': {
            'file': str(path),
            'list': [{'model': 'Reolink', 'name': 'Porch', 'address': '192.168.1.70'}],
        }})

        cameras = load_cameras(config)

        assert [c.name for c in cameras][-1] == 'Porch'
        assert len(cameras) == 4

    def test_load_from_config_duplicate_across_sources(self, tmp_path):
        """Test names must be unique across the file and the list."""
        path = tmp_path / "cameras.tsv"
        path.write_text(''.join(ROWS))
        config = Config({'cameras': {
            'file': str(path),
            'list': [{'model': 'Reolink', 'name': 'Garage West', 'address': '192.168.1.70'}],
        }})

        with pytest.raises(ConfigError):
            load_cameras(config)

    def test_no_cameras(self):
        """Test an empty camera section is an error."""
        with pytest.raises(ConfigError):
            load_cameras(Config({}))


class TestURLResolver:
    """Test per-model URL resolution."""

    def test_reolink(self):
        """Test the Reolink main stream URL."""
        url = URLResolver().resolve('Reolink', '192.168.1.48')

        assert url == 'rtsp://192.168.1.48:554/h264Preview_01_main'

    def test_cpplus(self):
        """Test the CP Plus URL."""
        url = URLResolver().resolve('CPPlus', '10.0.0.5')

        assert url == 'rtsp://10.0.0.5:554/cam/realmonitor?channel=1&subtype=0'

    def test_unsupported_model(self):
        """Test unknown models raise UnsupportedModelError."""
        with pytest.raises(UnsupportedModelError) as exc_info:
            URLResolver().resolve('Acme', '192.168.1.48')

        assert exc_info.value.model == 'Acme'

    def test_model_names_are_exact(self):
        """Test model matching is case sensitive."""
        with pytest.raises(UnsupportedModelError):
            URLResolver().resolve('reolink', '192.168.1.48')

    def test_register_template(self):
        """Test registering a template string."""
        resolver = URLResolver()
        resolver.register('Acme', 'rtsp://{address}/live')

        assert resolver.resolve('Acme', 'cam.local') == 'rtsp://cam.local/live'
        assert 'Acme' in resolver.supported_models

    def test_register_callable(self):
        """Test registering a callable rule."""
        resolver = URLResolver({'Acme': lambda address: f"rtsp://{address.upper()}/x"})

        assert resolver.resolve('Acme', 'cam') == 'rtsp://CAM/x'

    def test_override_builtin(self):
        """Test a rule can replace a built-in model."""
        resolver = URLResolver({'Reolink': ModelRule('rtsp://{address}:554/h264Preview_01_sub')})

        assert resolver.resolve('Reolink', '1.2.3.4').endswith('_sub')

    def test_from_config(self):
        """Test models from config are registered."""
        config = Config({'models': {'Hikvision': 'rtsp://{address}:554/Streaming/Channels/101'}})
        resolver = create_url_resolver(config)

        assert resolver.resolve('Hikvision', '1.2.3.4') == 'rtsp://1.2.3.4:554/Streaming/Channels/101'
        assert resolver.resolve('Reolink', '1.2.3.4').startswith('rtsp://1.2.3.4:554/')

    @pytest.mark.parametrize("template", [
        'rtsp://{address}:{port}/live',
        'rtsp://{}/live',
        'rtsp://{0}/live',
    ])
    def test_broken_template_is_config_error(self, template):
        """Test a template that cannot be filled names its model."""
        resolver = URLResolver({'Acme': template})

        with pytest.raises(ConfigError) as exc_info:
            resolver.resolve('Acme', '192.168.1.70')

        assert 'Acme' in str(exc_info.value)

    def test_failing_callable_is_config_error(self):
        def rule(address):
            raise ValueError(f"bad address {address}")

        resolver = URLResolver({'Acme': rule})

        with pytest.raises(ConfigError):
            resolver.resolve('Acme', 'cam')
