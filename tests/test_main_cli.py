from main import _parse_args, main


def test_default_command_invokes_serve() -> None:
    args = _parse_args([])
    assert args.command == "serve"


def test_default_command_accepts_options_without_subcommand() -> None:
    args = _parse_args(["--host", "127.0.0.1", "--port", "9000"])
    assert args.command == "serve"
    assert args.host == "127.0.0.1"
    assert args.port == 9000


def test_serve_defaults() -> None:
    args = _parse_args(["serve"])
    assert args.port == 8080
    assert args.ssl_certfile is None
    assert args.config is None


def test_global_config_option_precedes_subcommand() -> None:
    args = _parse_args(["--config", "comanda.yaml", "register"])
    assert args.command == "register"
    assert args.config == "comanda.yaml"


def test_init_db_subcommand_available() -> None:
    args = _parse_args(["init-db"])
    assert args.command == "init-db"


def test_init_db_uses_database_path_from_config(tmp_path, monkeypatch, capsys) -> None:
    for variable in ("COMANDA_CONFIG", "COMANDA_DB_PATH", "COMANDA_JWT_SECRET"):
        monkeypatch.delenv(variable, raising=False)
    config_path = tmp_path / "comanda.yaml"
    config_path.write_text("database_path: from_config.sqlite3\n", encoding="utf-8")

    assert main(["--config", str(config_path), "init-db"]) == 0

    assert (tmp_path / "from_config.sqlite3").exists()
    assert "restaurants=0" in capsys.readouterr().out
