"""Base commands: networked state shared by server and client."""

from modhost.extensions import Plugin


class BaseCommandsPlugin(Plugin):
    is_networked = True

    def setup_data_table(self) -> None:
        self.add_dt_var("boolean", "all_talk", False)
        self.add_dt_var("integer", "gamestate", 0)


def setup(builder) -> None:
    builder.register(BaseCommandsPlugin())
