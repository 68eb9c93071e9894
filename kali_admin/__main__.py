from kali_admin.cli import app

app(prog_name="kali-admin")
