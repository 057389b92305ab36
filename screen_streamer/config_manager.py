import configparser
import os
import argparse

PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))


class ConfigManager:
    def __init__(self, config_file='localhost.conf', config_dir='config', default_config_file=None):
        self.config_file = os.path.join(config_dir, config_file)
        self.config_dir = config_dir
        self.default_config_file = default_config_file or os.path.join(PACKAGE_DIR, 'default_config.ini')
        self.config = configparser.ConfigParser()
        self.load_config()

    @staticmethod
    def parse_arguments(argv=None):
        parser = argparse.ArgumentParser(description='Stream the desktop as MJPEG over HTTP.')
        parser.add_argument('-d', '--config-dir', type=str, default='config',
                            help='Directory containing the configuration file')
        parser.add_argument('-f', '--config-file', type=str, default='localhost.conf',
                            help='Name of the configuration file')
        parser.add_argument('-p', '--port', type=int, help='Override the HTTP port')
        parser.add_argument('--log-file', type=str, help='Write the log to this file instead of stderr')
        parser.add_argument('--debug', action='store_true', help='Log producer output and other debug detail')
        return parser.parse_args(argv)

    def load_config(self):
        self.load_default_config()
        if os.path.exists(self.config_file):
            self.config.read(self.config_file)
        else:
            self.create_default_config()

    def load_default_config(self):
        if not os.path.exists(self.default_config_file):
            raise FileNotFoundError(f"Default config file '{self.default_config_file}' not found.")
        self.default_config = configparser.ConfigParser()
        self.default_config.read(self.default_config_file)
        # Defaults first so a partial host config only overrides what it names
        self.config.read(self.default_config_file)

    def create_default_config(self):
        # Copy default config to main config
        for section in self.default_config.sections():
            if not self.config.has_section(section):
                self.config.add_section(section)
            for key, value in self.default_config.items(section):
                if not self.config.has_option(section, key):
                    self.config.set(section, key, value)

        # Write the default config to the specified config file
        os.makedirs(self.config_dir, exist_ok=True)
        with open(self.config_file, 'w') as file:
            self.config.write(file)

    def set(self, section, key, value):
        if not self.config.has_section(section):
            self.config.add_section(section)
        self.config.set(section, key, str(value))

    def get(self, section, key, fallback=None):
        return self.config.get(section, key, fallback=fallback)

    def getint(self, section, key, fallback=None):
        return self.config.getint(section, key, fallback=fallback)

    def getfloat(self, section, key, fallback=None):
        return self.config.getfloat(section, key, fallback=fallback)

    def getboolean(self, section, key, fallback=None):
        return self.config.getboolean(section, key, fallback=fallback)

    def get_section_items(self, section):
        if self.config.has_section(section):
            return dict(self.config.items(section))
        return {}
