from markdown_pdf.cli import app

if __name__ == "__main__":
    app(["action"])
