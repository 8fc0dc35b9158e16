from github_settings_worker.main import run

run()
