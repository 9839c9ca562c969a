"""Tests for target repository naming."""

import pytest

from gh_batch_migrate.migration.naming import (
    ado_target_name,
    replace_invalid_characters,
    resolve_target_id,
    unique_target_id,
)
from gh_batch_migrate.models.repository import Repository, SourceKind


class TestNaming:
    """Test target name resolution."""

    def test_ado_name_with_spaces_and_punctuation(self):
        """Team project and repo are joined and sanitized."""
        assert ado_target_name('Proj A', 'My Repo!') == 'Proj-A-My-Repo-'

    @pytest.mark.parametrize(
        'value, expected',
        [
            ('simple', 'simple'),
            ('dots.and-dashes_ok', 'dots.and-dashes_ok'),
            ('a  b', 'a-b'),
            ('a/b\\c', 'a-b-c'),
            ('tab\tand space', 'tab-and-space'),
        ],
    )
    def test_replace_invalid_characters(self, value, expected):
        assert replace_invalid_characters(value) == expected

    def test_idempotent(self):
        """Resolving an already resolved name changes nothing."""
        once = replace_invalid_characters('Proj A-My Repo!')

        assert replace_invalid_characters(once) == once

    def test_github_names_unchanged(self):
        repository = Repository(source_key='my.repo')

        assert resolve_target_id(repository, SourceKind.GITHUB) == 'my.repo'

    def test_ado_names_use_team_project(self):
        repository = Repository(source_key='Web App', group_key='Platform')

        assert resolve_target_id(repository, SourceKind.ADO) == 'Platform-Web-App'

    def test_unique_target_id_suffixes_clashes(self):
        """Repeated names get numbered suffixes in the order they are issued."""
        issued = set()

        names = [unique_target_id(name, issued) for name in ('app', 'App', 'app')]

        assert names == ['app', 'App-2', 'app-3']
        assert issued == {'app', 'app-2', 'app-3'}

    def test_unique_target_id_skips_taken_suffix(self):
        issued = {'app', 'app-2'}

        assert unique_target_id('app', issued) == 'app-3'
