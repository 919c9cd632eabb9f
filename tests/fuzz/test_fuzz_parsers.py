import random
import string
import pytest
from imgspec.errors import DescriptorError, DockerfileSyntaxError
from imgspec.PARSERS.dockerfile_parser import DockerfileParser
from imgspec.PARSERS.env_parser import EnvParser
from imgspec.PARSERS.spec_loader import SpecLoader
from imgspec.UTILS.string_interpolation import EnvironmentInterpolator

def random_string(length):
    return ''.join(random.choice(string.printable) for _ in range(length))

def test_fuzz_dockerfile_parser():
    parser = DockerfileParser()
    for _ in range(100):
        content = random_string(random.randint(0, 1000))
        # Junk may be rejected, but only with a syntax error
        try:
            parser.parse_from_string(content)
        except DockerfileSyntaxError:
            pass

def test_fuzz_spec_loader():
    loader = SpecLoader()
    keywords = ["FROM", "RUN", "COPY", "ENV", "ARG", "WORKDIR", "CMD", "EXPOSE", "LABEL"]
    for _ in range(100):
        lines = [f"{random.choice(keywords)} {random_string(random.randint(1, 40)).strip() or 'x'}"
                 for _ in range(random.randint(1, 10))]
        try:
            loader.from_string("\n".join(lines), "fuzz")
        except DockerfileSyntaxError:
            pass

def test_fuzz_yaml_loader():
    loader = SpecLoader()
    for _ in range(100):
        try:
            loader.from_yaml_string(random_string(random.randint(0, 300)), "fuzz")
        except DescriptorError:
            pass

def test_fuzz_env_parser():
    for _ in range(100):
        content = random_string(random.randint(0, 1000))
        env = EnvParser.parse_from_string(content, host_env={})
        assert all(isinstance(v, str) for v in env.values())

def test_fuzz_interpolation():
    for _ in range(100):
        EnvironmentInterpolator.interpolate(random_string(random.randint(0, 200)), {"A": "1"})

def test_edge_cases_parsers():
    dockerfile_parser = DockerfileParser()

    # Empty string
    assert dockerfile_parser.parse_from_string("") == []

    # Only whitespace
    assert dockerfile_parser.parse_from_string("   \n\t  ") == []

    # Very long line
    dockerfile_parser.parse_from_string("RUN " + "a" * 10000)

    # Many line continuations
    instructions = dockerfile_parser.parse_from_string("RUN echo \\\n" * 100 + "hello")
    assert len(instructions) == 1
