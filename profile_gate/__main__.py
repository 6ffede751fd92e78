from profile_gate.main import run

run()
