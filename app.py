from studio import create_app

app = create_app()

if __name__ == "__main__":
    # Local development: honors DEBUG from the config
    app.run(debug=app.config.get("DEBUG", True), host="127.0.0.1", port=5000)
