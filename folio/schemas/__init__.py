from pydantic.alias_generators import to_camel


class CamelConfig:
    from_attributes = True
    alias_generator = to_camel
    populate_by_name = True
