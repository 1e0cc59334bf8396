"""Tests for stashctl package imports and exports."""

from __future__ import annotations


class TestPackageImports:
    """Tests for package imports."""

    def test_import_stashctl(self):
        import stashctl

        assert hasattr(stashctl, "__version__")

    def test_import_core_modules(self):
        from stashctl.core import auth, client, config, exceptions, logging, output, validation

        assert client is not None
        assert config is not None
        assert auth is not None
        assert exceptions is not None
        assert validation is not None
        assert output is not None
        assert logging is not None

    def test_import_models(self):
        from stashctl.models import base, progress

        assert base is not None
        assert progress is not None

    def test_import_services(self):
        from stashctl.services import site, uploads

        assert site is not None
        assert uploads is not None

    def test_import_uploaders(self):
        from stashctl.uploaders import common, compression, estimator, queue

        assert common is not None
        assert compression is not None
        assert estimator is not None
        assert queue is not None


class TestPackageExports:
    """Tests for public exports."""

    def test_top_level_exports(self):
        import stashctl

        for name in stashctl.__all__:
            assert hasattr(stashctl, name), name

    def test_core_exports(self):
        from stashctl import core

        for name in core.__all__:
            assert hasattr(core, name), name

    def test_uploader_exports(self):
        from stashctl import uploaders

        for name in uploaders.__all__:
            assert hasattr(uploaders, name), name

    def test_services_exports(self):
        from stashctl.services import SiteService, UploadService

        assert SiteService is not None
        assert UploadService is not None
