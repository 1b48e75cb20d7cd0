"""Unit tests for the paychan configuration."""
import json
import pytest
import unittest.mock as mock

import paychan
import paychan.config as config
import paychan.exceptions as exceptions


CONFIG_DATA = json.dumps(dict(
    db_path='/var/lib/paychan/channels.sqlite3',
    program_id='11111111111111111111111111111111',
    verbose=True,
    sortby='balance',
))
PARTIAL_CONFIG_DATA = json.dumps(dict(
    verbose=True,
))


@mock.patch('os.path.exists', mock.Mock(return_value=True))
@mock.patch('paychan.config.open', mock.mock_open(read_data=CONFIG_DATA), create=True)
def test_basic_config():
    """Test Config object can load a file and access its settings."""
    c = config.Config('config_file')

    assert c.db_path == '/var/lib/paychan/channels.sqlite3'
    assert c.program_id == '11111111111111111111111111111111'
    assert c.verbose is True
    assert c.sortby == 'balance'

    with pytest.raises(AttributeError):
        c.not_a_setting


@mock.patch('os.path.exists', mock.Mock(return_value=True))
@mock.patch('paychan.config.open', mock.mock_open(read_data=PARTIAL_CONFIG_DATA), create=True)
def test_default_config():
    """Test Config object loads default settings when file is incomplete."""
    c = config.Config('config_file')

    assert c.db_path == paychan.PAYCHAN_DB_PATH
    assert c.program_id == paychan.PAYCHAN_PROGRAM_ID
    assert c.verbose is True


@mock.patch('os.path.exists', mock.Mock(return_value=True))
@mock.patch('paychan.config.open', mock.mock_open(read_data=CONFIG_DATA), create=True)
def test_override_config():
    """Test the config dictionary takes precedence over the file."""
    c = config.Config('config_file', config=dict(db_path=':memory:'))

    assert c.db_path == ':memory:'
    assert c.verbose is True

    with pytest.raises(TypeError):
        config.Config('config_file', config=[('db_path', ':memory:')])
    with pytest.raises(TypeError):
        config.Config(None)


@mock.patch('os.path.exists', mock.Mock(return_value=True))
def test_save_config():
    """Test Config object can save to update a file."""
    mock_config = mock.mock_open(read_data=CONFIG_DATA)
    with mock.patch('paychan.config.open', mock_config, create=True):
        c = config.Config('config_file')

    num_config_keys = len(c.state.keys())

    # Update an existing key and add a new one
    with mock.patch('paychan.config.open', mock_config, create=True):
        c.set('db_path', '/tmp/channels.sqlite3', should_save=True)
        c.set('some_list_key', [123, 456, 789], should_save=True)

    # Import the newly saved configuration file
    new_config = json.loads(mock_config.return_value.write.call_args[0][0])

    mock_config.assert_called_with('config_file', mode='w')
    assert c.db_path == '/tmp/channels.sqlite3'
    assert c.some_list_key == [123, 456, 789]
    assert new_config['db_path'] == '/tmp/channels.sqlite3'
    assert new_config['some_list_key'] == [123, 456, 789]
    assert len(new_config.keys()) == num_config_keys + 1


@mock.patch('os.path.exists', mock.Mock(return_value=True))
def test_no_config_file_exists():
    """Test that a new `paychan.json` file is created if it doesn't exist."""
    mock_config = mock.mock_open()
    mock_config.side_effect = [FileNotFoundError(), mock.DEFAULT]
    with mock.patch('paychan.config.open', mock_config, create=True):
        c = config.Config('config_file', config=json.loads(PARTIAL_CONFIG_DATA))

    assert mock_config.call_count == 2
    dc = json.loads(mock_config.return_value.write.call_args[0][0])
    mock_config.assert_called_with('config_file', mode='w')

    # The file holds the defaults, the override only applies in memory
    assert dc == config.Config.DEFAULTS
    assert c.verbose is True


@mock.patch('os.path.exists', mock.Mock(return_value=True))
def test_invalid_config_file():
    """Test that an invalid `paychan.json` file cannot be imported."""
    mock_config = mock.mock_open(mock=mock.Mock(side_effect=ValueError))
    with mock.patch('paychan.config.open', mock_config, create=True), pytest.raises(exceptions.FileDecodeError):  # nopep8
        config.Config('config_file')

    mock_config.assert_called_with('config_file', mode='r')


def test_config_file_created(tmpdir):
    """Test a config file and its directory are created on disk."""
    config_file = str(tmpdir.join("paychan", "paychan.json"))
    c = config.Config(config_file)
    with open(config_file) as f:
        assert json.loads(f.read()) == config.Config.DEFAULTS

    c.set('verbose', True, should_save=True)
    reloaded = config.Config(config_file)
    assert reloaded.verbose is True


@mock.patch('os.path.exists', mock.Mock(return_value=True))
@mock.patch('paychan.config.open', mock.mock_open(read_data=CONFIG_DATA), create=True)
def test_config_repr():
    """Test Config object can be displayed nicely in `print` statements."""
    c = config.Config('config_file')
    printed = c.__repr__()

    assert printed.startswith('<Config ')
    assert '/var/lib/paychan/channels.sqlite3' in printed
    assert '11111111111111111111111111111111' in printed
    assert 'balance' in printed
    assert 'True' in printed
