# (c) Copyright 2022 Aaron Kimball

VERSION = [0, 1, 0]
VERSION_STR = '.'.join(map(str, VERSION))
FULL_VERSION_STR = f'AT command parser (at-parser) version {VERSION_STR}'

if __name__ == '__main__':
    print(FULL_VERSION_STR)
