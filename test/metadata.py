"""
Metadata module behavioral tests (annotation text, descriptors, override hooks).

Scope
- Validate the kind decision (flag by default, positional, subcommand) and default names.
- Validate every override key, the bare ``required`` token and enum splitting.
- Validate malformed annotations and the tag_options override hook.

Conventions
- Test method names follow CamelCase per project convention.
- Tests use the public API (parse, extract, annotation_text, FieldDescriptor, Kind).
"""
import unittest
from typing import Annotated
from unittest import TestCase

from commandeer import FieldDescriptor, Kind, Unset, annotation_text, extract, parse
from commandeer.faults import (
    FaultCode,
    InvalidDescriptorError,
    MalformedAnnotationError,
    SignatureError,
)


class TestAnnotationText(TestCase):
    """Behavioral tests for annotation_text()."""

    def testFirstStringMetadataWins(self):
        self.assertEqual(annotation_text(Annotated[int, 3, "flag,short=n", "ignored"]), "flag,short=n")

    def testPlainTypesHaveNoText(self):
        self.assertEqual(annotation_text(int), "")
        self.assertEqual(annotation_text(Annotated[int, 3]), "")


class TestParse(TestCase):
    """Behavioral tests for parse()."""

    def testEmptyTextIsLowerCasedFlag(self):
        descriptor = parse("", "Verbose")
        self.assertIs(descriptor.kind, Kind.FLAG)
        self.assertEqual(descriptor.name, "verbose")
        self.assertIs(descriptor.short, Unset)
        self.assertIs(descriptor.default, Unset)
        self.assertFalse(descriptor.required)
        self.assertEqual(descriptor.description, "")

    def testPositionalKeepsFieldName(self):
        descriptor = parse("positional", "Src")
        self.assertIs(descriptor.kind, Kind.POSITIONAL)
        self.assertEqual(descriptor.name, "Src")

    def testSubcommandIsKebabCased(self):
        descriptor = parse("subcommand", "DryRun")
        self.assertIs(descriptor.kind, Kind.SUBCOMMAND)
        self.assertEqual(descriptor.name, "dry-run")

    def testSubcommandExplicitName(self):
        self.assertEqual(parse("subcommand=go", "Launch").name, "go")

    def testSubcommandWinsOverPositional(self):
        self.assertIs(parse("positional,subcommand", "x").kind, Kind.SUBCOMMAND)

    def testEveryOverride(self):
        descriptor = parse(
            "flag,name=stage,short=s,env=APP_STAGE,default=dev,enum=dev|prod,placeholder=STAGE,required,desc=target stage",
            "Mode",
        )
        self.assertEqual(descriptor, FieldDescriptor(
            Kind.FLAG,
            "stage",
            short="s",
            env="APP_STAGE",
            default="dev",
            enum=("dev", "prod"),
            placeholder="STAGE",
            required=True,
            description="target stage",
        ))

    def testDescriptionAlias(self):
        self.assertEqual(parse("description=hello", "x").description, "hello")

    def testEmptyNameFallsBackToDefault(self):
        self.assertEqual(parse("name=", "Verbose").name, "verbose")

    def testExplicitEmptyDefaultIsKept(self):
        self.assertEqual(parse("default=", "x").default, "")

    def testLabels(self):
        self.assertEqual(parse("short=v", "verbose").label(), "--verbose, -v")
        self.assertEqual(parse("", "verbose").label(), "--verbose")
        self.assertEqual(parse("short=v", "verbose").shortname, "-v")
        self.assertEqual(parse("", "verbose").shortname, "")

    def testUnknownTokenRaises(self):
        with self.assertRaises(MalformedAnnotationError) as context:
            parse("flag,colour=red", "x")
        self.assertIn("'colour=red'", str(context.exception))

    def testBareUnknownTokenRaises(self):
        with self.assertRaises(MalformedAnnotationError):
            parse("hidden", "x")

    def testLongShortAliasRaises(self):
        with self.assertRaises(MalformedAnnotationError):
            parse("short=vv", "verbose")


class TestExtract(TestCase):
    """Behavioral tests for extract() and the tag_options hook."""

    def testWithoutOwnerMatchesParse(self):
        self.assertEqual(extract("short=v", "verbose"), parse("short=v", "verbose"))

    def testHookOverridesDescriptor(self):
        class Owner:
            def tag_options(self, field_name, descriptor):
                if field_name == "verbose":
                    return descriptor._replace(name="loud", env="LOUD")
                return descriptor

        descriptor = extract("short=v", "verbose", Owner())
        self.assertEqual(descriptor.name, "loud")
        self.assertEqual(descriptor.env, "LOUD")
        self.assertEqual(descriptor.short, "v")
        self.assertEqual(extract("", "quiet", Owner()).name, "quiet")

    def testHookExceptionsPropagate(self):
        class Owner:
            def tag_options(self, field_name, descriptor):
                raise LookupError(field_name)

        with self.assertRaises(LookupError):
            extract("", "verbose", Owner())

    def testHookWrongResultRaises(self):
        class Owner:
            def tag_options(self, field_name, descriptor):
                return "loud"

        with self.assertRaises(SignatureError) as context:
            extract("", "verbose", Owner())
        self.assertEqual(context.exception.options["code"], FaultCode.INVALID_RESULT)

    def testHookWrongShapeRaises(self):
        class Owner:
            def tag_options(self):
                pass

        with self.assertRaises(SignatureError):
            extract("", "verbose", Owner())

    def testHookEmptyNameRaises(self):
        class Owner:
            def tag_options(self, field_name, descriptor):
                return descriptor._replace(name="")

        with self.assertRaises(InvalidDescriptorError):
            extract("", "verbose", Owner())


if __name__ == "__main__":
    unittest.main()
