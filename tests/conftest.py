"""
Pytest configuration and shared fixtures for AutoDocGen tests.
"""

import json
from pathlib import Path

import pytest

from autodocgen.config import Settings

NEST_CONTROLLER = """import { Controller, Get, Post, Body, Param, UseGuards } from '@nestjs/common';
import { UsersService } from './users.service';
import { CreateUserDto } from './dto/create-user.dto';

@Controller('users')
export class UsersController {
  constructor(private readonly usersService: UsersService) {}

  @Get()
  findAll() {
    return this.usersService.findAll();
  }

  @Get(':id')
  findOne(@Param('id') id: string) {
    return this.usersService.findOne(id);
  }

  @Post()
  @UseGuards(AuthGuard)
  create(@Body() createUserDto: CreateUserDto) {
    return this.usersService.create(createUserDto);
  }
}
"""

NEST_SERVICE = """import { Injectable } from '@nestjs/common';

@Injectable()
export class UsersService {
  private users: User[] = [];

  constructor(private readonly repository: UsersRepository) {}

  findAll(): User[] {
    return this.users;
  }

  async findOne(id: string): Promise<User | undefined> {
    return this.users.find(user => user.id === id);
  }

  create(dto: CreateUserDto): User {
    const user = { id: String(this.users.length + 1), ...dto };
    this.users.push(user);
    return user;
  }
}
"""

NEST_TYPES = """export class CreateUserDto {
  @IsString()
  name: string;

  @IsEmail()
  email: string;

  age?: number;
}

export interface User {
  id: string;
  name: string;
  email: string;
  age?: number;
}

export enum UserRole {
  Admin = 'admin',
  Member = 'member',
}

export type UserSummary = {
  id: string;
  name: string;
};
"""

NEST_MODULE = """import { Module } from '@nestjs/common';

@Module({ controllers: [UsersController], providers: [UsersService] })
export class AppModule {}
"""

NEST_MAIN = """import { NestFactory } from '@nestjs/core';
import { AppModule } from './app.module';

async function bootstrap() {
  const app = await NestFactory.create(AppModule);
  await app.listen(3000);
}
bootstrap();
"""

EXPRESS_APP = """const express = require('express');
const usersRouter = require('./routes/users');

const app = express();
app.use(express.json());
app.use('/users', usersRouter);

app.get('/health', (req, res) => {
  res.json({ status: 'ok' });
});

app.listen(3000);
"""

EXPRESS_USERS = """const express = require('express');
const router = express.Router();
const { authenticate } = require('../middleware/auth');

function listUsers(req, res) {
  res.json([]);
}

router.get('/', listUsers);
router.get('/:id', getUser);
router.post('/', authenticate, createUser);
router.delete('/:id', authenticate, deleteUser);

module.exports = router;
"""


def write_files(root: Path, files: dict) -> Path:
    for rel_path, content in files.items():
        path = root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def nestjs_project(tmp_path):
    """A small NestJS project with one controller, service and DTO file."""
    return write_files(tmp_path / "nest-app", {
        "package.json": json.dumps({
            "name": "nest-app",
            "dependencies": {"@nestjs/core": "^10.0.0", "@nestjs/common": "^10.0.0"},
        }),
        "src/main.ts": NEST_MAIN,
        "src/app.module.ts": NEST_MODULE,
        "src/users/users.controller.ts": NEST_CONTROLLER,
        "src/users/users.service.ts": NEST_SERVICE,
        "src/users/dto/create-user.dto.ts": NEST_TYPES,
        "node_modules/@nestjs/core/index.js": "app.get('/internal', handler);\n",
    })


@pytest.fixture
def express_project(tmp_path):
    """A small Express project with an app file and a users router."""
    return write_files(tmp_path / "express-app", {
        "package.json": json.dumps({"name": "express-app", "dependencies": {"express": "^4.18.0"}}),
        "src/app.js": EXPRESS_APP,
        "src/routes/users.js": EXPRESS_USERS,
    })


@pytest.fixture
def settings(tmp_path):
    """Default settings writing output under the test directory."""
    settings = Settings()
    settings.files.output_dir = str(tmp_path / "docs")
    return settings
